"""SQLAlchemy database models."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Stored when a review carries no source label, so the natural key never holds NULL
DEFAULT_REVIEW_SOURCE = "cupid"


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Property(Base):
    """Language-agnostic hotel data."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    brand_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    stars: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lon: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    address_raw: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    amenities: Mapped[Optional[list]] = mapped_column(JSONB(none_as_null=True), nullable=True)
    images: Mapped[Optional[list]] = mapped_column(JSONB(none_as_null=True), nullable=True)
    raw: Mapped[Optional[dict]] = mapped_column(JSONB(none_as_null=True), nullable=True)  # Full upstream payload
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    translations: Mapped[list["PropertyTranslation"]] = relationship(
        "PropertyTranslation", back_populates="property", cascade="all, delete-orphan"
    )
    reviews: Mapped[list["PropertyReview"]] = relationship(
        "PropertyReview", back_populates="property", cascade="all, delete-orphan"
    )


class PropertyTranslation(Base):
    """Localized fields for one property and language."""

    __tablename__ = "property_i18n"

    property_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("properties.id", ondelete="CASCADE"), primary_key=True
    )
    lang: Mapped[str] = mapped_column(String(10), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    policies: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)  # Localized override
    extras: Mapped[Optional[dict]] = mapped_column(JSONB(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    property: Mapped["Property"] = relationship("Property", back_populates="translations")

    __table_args__ = (Index("idx_i18n_lang", "lang"),)


class PropertyReview(Base):
    """Guest review, unique per (property_id, source, source_id)."""

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    source_id: Mapped[str] = mapped_column(String(191), nullable=False)
    author: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rating: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    lang: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    aspects: Mapped[Optional[dict]] = mapped_column(JSONB(none_as_null=True), nullable=True)
    source: Mapped[str] = mapped_column(
        String(64), nullable=False, server_default=DEFAULT_REVIEW_SOURCE
    )
    raw: Mapped[Optional[dict]] = mapped_column(JSONB(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    property: Mapped["Property"] = relationship("Property", back_populates="reviews")

    __table_args__ = (
        UniqueConstraint("property_id", "source", "source_id", name="uq_reviews_natural"),
        Index("idx_reviews_prop_created", "property_id", "created_at"),
    )


class IngestMiss(Base):
    """Failed fetch for a property, one row per reason ('not found', 'i18n:fr', ...)."""

    __tablename__ = "ingest_misses"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    reason: Mapped[str] = mapped_column(String(255), primary_key=True)
    http_status: Mapped[int] = mapped_column(Integer, nullable=False)
    seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
