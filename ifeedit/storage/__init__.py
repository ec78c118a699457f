"""
iFeedIt Storage Layer
=====================

Repository pattern implementations for data access abstraction.
"""

from .item_repository import ItemRepository
from .preference_repository import PreferenceRepository

__all__ = [
    "ItemRepository",
    "PreferenceRepository",
]
