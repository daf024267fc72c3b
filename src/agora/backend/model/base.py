"""Base data model class"""
from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime (the only kind stored)"""
    return datetime.now(timezone.utc)


class BaseModel(SQLModel):
    """Base class for all data tables with common fields"""

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
    )

    def touch(self):
        """Refresh the update timestamp"""
        self.updated_at = utc_now()
