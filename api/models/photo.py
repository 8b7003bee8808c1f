"""
Photo and category models for database and API schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Annotated
from uuid import uuid4

from annotated_doc import Doc
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
)
from sqlalchemy.orm import relationship

from api.models.database import Base

photo_categories = Table(
    "photo_categories",
    Base.metadata,
    Column("photo_id", String(36), ForeignKey("photos.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", String(36), ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Category(Base):
    """Photo category."""
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(255), nullable=False, unique=True, index=True)

    photos = relationship("Photo", secondary=photo_categories, back_populates="categories")

    def __repr__(self):
        return f"<Category {self.name}>"


class Photo(Base):
    """Database model for gallery photos."""
    __tablename__ = "photos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    title = Column(String(255), nullable=False)

    # Storage
    url = Column(String, nullable=False)
    thumbnail_url = Column(String, nullable=True)
    storage_provider = Column(String(32), nullable=False, default="local")
    storage_key = Column(String, nullable=False)
    thumbnail_key = Column(String, nullable=True)

    # Image properties
    width = Column(Integer, default=0, nullable=False)
    height = Column(Integer, default=0, nullable=False)
    size = Column(Integer, default=0, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)

    # EXIF
    camera_make = Column(String, nullable=True)
    camera_model = Column(String, nullable=True)
    lens = Column(String, nullable=True)
    focal_length = Column(String, nullable=True)
    aperture = Column(String, nullable=True)
    shutter_speed = Column(String, nullable=True)
    iso = Column(Integer, nullable=True)
    taken_at = Column(DateTime, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    orientation = Column(Integer, nullable=True)
    software = Column(String, nullable=True)
    exif_raw = Column(JSON, nullable=True)

    # Timing
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    categories = relationship(
        "Category",
        secondary=photo_categories,
        back_populates="photos",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_photo_featured_created", "is_featured", "created_at"),
    )

    def __repr__(self):
        return f"<Photo {self.id} ({self.storage_provider})>"


# Pydantic models for API
class PhotoResponse(BaseModel):
    """Photo as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    url: str
    thumbnail_url: Annotated[Optional[str], Doc("Thumbnail URL")] = Field(None, serialization_alias="thumbnailUrl")
    storage_provider: str = Field(serialization_alias="storageProvider")
    storage_key: str = Field(serialization_alias="storageKey")
    thumbnail_key: Optional[str] = Field(None, serialization_alias="thumbnailKey")
    width: int
    height: int
    size: int
    is_featured: bool = Field(serialization_alias="isFeatured")
    camera_make: Optional[str] = Field(None, serialization_alias="cameraMake")
    camera_model: Optional[str] = Field(None, serialization_alias="cameraModel")
    lens: Optional[str] = None
    focal_length: Optional[str] = Field(None, serialization_alias="focalLength")
    aperture: Optional[str] = None
    shutter_speed: Optional[str] = Field(None, serialization_alias="shutterSpeed")
    iso: Optional[int] = None
    taken_at: Optional[datetime] = Field(None, serialization_alias="takenAt")
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    orientation: Optional[int] = None
    software: Optional[str] = None
    exif_raw: Optional[Dict[str, Any]] = Field(None, serialization_alias="exifRaw")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")
    category: Annotated[str, Doc("Comma-joined category names")] = ""

    @classmethod
    def from_photo(cls, photo: Photo) -> "PhotoResponse":
        response = cls.model_validate(photo)
        response.category = ",".join(c.name for c in photo.categories)
        return response


class PhotoUpdate(BaseModel):
    """Editable photo fields."""

    model_config = ConfigDict(populate_by_name=True)

    title: Annotated[Optional[str], Doc("New title")] = Field(None, min_length=1)
    is_featured: Annotated[Optional[bool], Doc("Featured flag")] = Field(None, alias="isFeatured")


def photo_payload(photos: List[Photo]) -> List[Dict[str, Any]]:
    """Serialize photos for a response envelope."""
    return [PhotoResponse.from_photo(p).model_dump(mode="json", by_alias=True) for p in photos]
