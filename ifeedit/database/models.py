"""
iFeedIt Data Models
===================

Pydantic data models for the records persisted by the ingestion pipeline.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator

from .schema import (
    COL_ID,
    COL_PUB_DATE,
    COL_TITLE,
    COL_LINK,
    COL_DESCRIPTION,
    COL_IMAGE_URL,
    COL_IMAGE_CONTENT,
)

MAX_IMAGE_BYTES = 1024 * 1024


class FeedItem(BaseModel):
    """One feed item as stored after an ingestion run."""
    id: int = Field(..., ge=0, description="Position of the item in the ingested feed")
    title: str = Field(default="", description="Item title")
    link: str = Field(default="", description="URL of the original article")
    description: str = Field(default="", description="Raw HTML/text body")
    image_url: Optional[str] = Field(default=None, description="Explicit or inferred image URL")
    image_content: Optional[bytes] = Field(default=None, description="Downloaded image bytes")
    published_at: int = Field(default=0, description="Publication time in epoch milliseconds")

    @field_validator('title', 'link', 'description', mode='before')
    @classmethod
    def default_empty_text(cls, v):
        """Missing text fields are stored as empty strings."""
        return "" if v is None else v

    @field_validator('image_content')
    @classmethod
    def validate_image_size(cls, v):
        """Image bytes never exceed the download cap."""
        if v is not None and len(v) > MAX_IMAGE_BYTES:
            raise ValueError(f"image_content exceeds {MAX_IMAGE_BYTES} bytes")
        return v

    @property
    def published(self) -> Optional[datetime]:
        """Publication time as an aware datetime, None when unknown."""
        if not self.published_at:
            return None
        return datetime.fromtimestamp(self.published_at / 1000, tz=timezone.utc)

    def to_db_row(self) -> Dict[str, Any]:
        """Column/value mapping for the items table."""
        return {
            COL_ID: self.id,
            COL_PUB_DATE: self.published_at,
            COL_TITLE: self.title,
            COL_LINK: self.link,
            COL_DESCRIPTION: self.description,
            COL_IMAGE_URL: self.image_url,
            COL_IMAGE_CONTENT: self.image_content,
        }

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "FeedItem":
        """Create FeedItem from an items table row."""
        data = dict(row)
        content = data.get(COL_IMAGE_CONTENT)
        return cls(
            id=data[COL_ID],
            published_at=data.get(COL_PUB_DATE) or 0,
            title=data.get(COL_TITLE),
            link=data.get(COL_LINK),
            description=data.get(COL_DESCRIPTION),
            image_url=data.get(COL_IMAGE_URL),
            image_content=bytes(content) if content is not None else None,
        )

    def __str__(self) -> str:
        return f"FeedItem({self.id}:{self.title[:50]})"


@dataclass
class IngestionStats:
    """Counters for one ingestion run."""
    items_stored: int = 0
    images_downloaded: int = 0
    images_unavailable: int = 0
    dates_unparsable: int = 0
    duration_seconds: float = 0.0
