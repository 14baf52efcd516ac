"""SQLAlchemy database models."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Product(Base):
    """Catalog product that listings and store rows point at."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    category_id: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    discontinued: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    listings: Mapped[list["PriceListing"]] = relationship(
        "PriceListing", back_populates="product", cascade="all, delete-orphan"
    )


class Retailer(Base):
    """Retailer with trust details."""

    __tablename__ = "retailers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    base_url: Mapped[str] = mapped_column(Text, default="", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ships_from: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    return_policy: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    authorized_dealer: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class PriceListing(Base):
    """A retailer's current offer for a product (one row per SKU)."""

    __tablename__ = "price_listings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(64), ForeignKey("products.id"), nullable=False)
    retailer_id: Mapped[str] = mapped_column(String(64), ForeignKey("retailers.id"), nullable=False)
    external_id: Mapped[str] = mapped_column(String(128), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    compare_at_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(8), default="USD", nullable=False)
    in_stock: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    on_sale: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    product_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    affiliate_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_checked: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    product: Mapped["Product"] = relationship("Product", back_populates="listings")
    retailer: Mapped["Retailer"] = relationship("Retailer", lazy="joined")

    __table_args__ = (
        UniqueConstraint("product_id", "retailer_id", "external_id", name="uq_listing_product_retailer_sku"),
    )


class PriceHistory(Base):
    """Append-only price observations per (product, retailer)."""

    __tablename__ = "price_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(String(64), ForeignKey("products.id"), nullable=False)
    retailer_id: Mapped[str] = mapped_column(String(64), ForeignKey("retailers.id"), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    __table_args__ = (Index("ix_price_history_product_recorded", "product_id", "recorded_at"),)


class StoreProduct(Base):
    """Raw store catalog row, possibly a bundle of a canonical product."""

    __tablename__ = "store_products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    retailer_id: Mapped[str] = mapped_column(String(64), ForeignKey("retailers.id"), nullable=False)
    canonical_product_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("products.id"), nullable=True
    )
    external_id: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[str] = mapped_column(Text, default="", nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    in_stock: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    product_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    affiliate_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    raw_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    retailer: Mapped["Retailer"] = relationship("Retailer", lazy="joined")

    __table_args__ = (
        UniqueConstraint("retailer_id", "external_id", name="uq_store_product_retailer_sku"),
        Index("ix_store_products_canonical", "canonical_product_id"),
    )


class RetailerCoupon(Base):
    """Coupon code offered by a retailer."""

    __tablename__ = "retailer_coupons"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    retailer_id: Mapped[str] = mapped_column(String(64), ForeignKey("retailers.id"), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    discount_type: Mapped[str] = mapped_column(String(32), nullable=False)  # percentage, fixed, free_shipping
    discount_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    min_purchase: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    auto_apply_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
