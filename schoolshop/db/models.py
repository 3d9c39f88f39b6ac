from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from schoolshop.db.base import Base
from schoolshop.db.enums import (
    ImageTypeEnum,
    LeadConfigurationStatusEnum,
    PrintPositionEnum,
    ShopStatusEnum,
)

JSONType = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(10, 2)


def _uuid_str() -> str:
    return str(uuid4())


def _id_column() -> Mapped[str]:
    return mapped_column(String(36), primary_key=True, default=_uuid_str)


def _created_at_column() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class AdminUser(Base):
    __tablename__ = "admin_users"

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at_column()


class UserRole(Base):
    __tablename__ = "user_roles"

    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    school_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("schools.id", ondelete="CASCADE"), nullable=True
    )
    shop_id: Mapped[Optional[str]] = mapped_column(ForeignKey("shops.id", ondelete="CASCADE"), nullable=True)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at_column()


class School(Base):
    __tablename__ = "schools"

    id: Mapped[str] = _id_column()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    short_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    country: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at_column()


class Shop(Base):
    __tablename__ = "shops"

    id: Mapped[str] = _id_column()
    school_id: Mapped[str] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[ShopStatusEnum] = mapped_column(
        Enum(ShopStatusEnum, name="shop_status"),
        default=ShopStatusEnum.draft,
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    shop_open_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    shop_close_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = _created_at_column()


class LeadConfiguration(Base):
    __tablename__ = "lead_configurations"

    id: Mapped[str] = _id_column()
    school_id: Mapped[str] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    shop_id: Mapped[Optional[str]] = mapped_column(ForeignKey("shops.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[LeadConfigurationStatusEnum] = mapped_column(
        Enum(LeadConfigurationStatusEnum, name="lead_configuration_status"),
        default=LeadConfigurationStatusEnum.draft,
        nullable=False,
    )
    # [{"textile_id": ..., "colors": [...], "sizes": [...]}]
    selected_textiles: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)
    # {textile_id: {"front": {"print_method_id": ..., "active": true}, ...}}
    print_positions: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    # {textile_id: {"final_price": ..., "breakdown": {...}}}
    price_calculation: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    sponsoring: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    margin: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = _created_at_column()
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Textile(Base):
    __tablename__ = "textile_catalog"

    id: Mapped[str] = _id_column()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    article_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_price: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    available_colors: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    available_sizes: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at_column()
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class TextilePrice(Base):
    __tablename__ = "textile_prices"

    id: Mapped[str] = _id_column()
    textile_id: Mapped[str] = mapped_column(
        ForeignKey("textile_catalog.id", ondelete="CASCADE"), nullable=False, index=True
    )
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at_column()


class PrintMethod(Base):
    __tablename__ = "print_methods"

    id: Mapped[str] = _id_column()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at_column()


class PrintMethodCost(Base):
    __tablename__ = "print_method_costs"

    id: Mapped[str] = _id_column()
    print_method_id: Mapped[str] = mapped_column(
        ForeignKey("print_methods.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Text columns: admins type these in free form, the price resolver parses them.
    cost_per_unit: Mapped[str] = mapped_column(Text, nullable=False)
    cost_50_units: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost_100_units: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at_column()


class PrintCost(Base):
    __tablename__ = "print_costs"

    id: Mapped[str] = _id_column()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[PrintPositionEnum] = mapped_column(
        Enum(PrintPositionEnum, name="print_position"), nullable=False
    )
    cost_per_unit: Mapped[Decimal] = mapped_column(Money, nullable=False)
    setup_fee: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at_column()


class HandlingCost(Base):
    __tablename__ = "handling_costs"

    id: Mapped[str] = _id_column()
    cost_per_order: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at_column()


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint(
            "lead_configuration_id", "textile_id", name="uq_products_lead_configuration_textile"
        ),
    )

    id: Mapped[str] = _id_column()
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    lead_configuration_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("lead_configurations.id", ondelete="SET NULL"), nullable=True
    )
    textile_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("textile_catalog.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = _created_at_column()


class ProductVariant(Base):
    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint("product_id", "name", "color_name", name="uq_product_variants_size_color"),
        # NULL colors never collide in the constraint above.
        Index(
            "uq_product_variants_size_only",
            "product_id",
            "name",
            unique=True,
            postgresql_where=text("color_name IS NULL"),
            sqlite_where=text("color_name IS NULL"),
        ),
    )

    id: Mapped[str] = _id_column()
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    color_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color_hex: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    additional_price: Mapped[Optional[Decimal]] = mapped_column(Money, default=Decimal("0"), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ProductImage(Base):
    __tablename__ = "product_images"

    id: Mapped[str] = _id_column()
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    textile_color_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    textile_color_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True
    )
    image_type: Mapped[ImageTypeEnum] = mapped_column(
        Enum(ImageTypeEnum, name="product_image_type"),
        default=ImageTypeEnum.front,
        nullable=False,
    )
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    print_file_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at_column()


class ShopifyConnection(Base):
    __tablename__ = "shopify_connections"

    id: Mapped[str] = _id_column()
    shop_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at_column()


class ShopifyProductMapping(Base):
    __tablename__ = "shopify_product_mappings"

    id: Mapped[str] = _id_column()
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    shopify_product_id: Mapped[str] = mapped_column(Text, nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
