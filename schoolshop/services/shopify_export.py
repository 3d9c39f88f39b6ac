from __future__ import annotations

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from schoolshop.config import settings
from schoolshop.db.models import Product, ProductImage, ProductVariant
from schoolshop.db.repositories.products import ProductImagesRepository, ProductsRepository, ProductVariantsRepository
from schoolshop.db.repositories.shopify import ShopifyConnectionsRepository, ShopifyProductMappingsRepository
from schoolshop.errors import NotFoundError, UpstreamFailureError, UpstreamTimeoutError
from schoolshop.services.pricing import parse_cost
from schoolshop.services.shopify_api import ShopifyApiClient, ShopifyApiError
from schoolshop.services.variant_matrix import STANDARD_VARIANT_NAME

logger = logging.getLogger(__name__)

SIZE_OPTION = "Größe"
COLOR_OPTION = "Farbe"
DEFAULT_IMAGE_GROUP = "default"

_SIZE_LIKE_RE = re.compile(r"^[0-9XLSM]+$", re.IGNORECASE)
_CENT = Decimal("0.01")


@dataclass(frozen=True)
class ExportVariant:
    name: str
    color_name: Optional[str] = None
    additional_price: Decimal = Decimal("0")
    sku: Optional[str] = None

    @classmethod
    def from_row(cls, row: ProductVariant) -> "ExportVariant":
        return cls(
            name=(row.name or "").strip(),
            color_name=(row.color_name or "").strip() or None,
            additional_price=Decimal(str(row.additional_price or 0)),
            sku=row.sku or None,
        )


@dataclass
class ExternalVariantInput:
    price: str
    option_values: list[tuple[str, str]] = field(default_factory=list)
    sku: Optional[str] = None
    inventory_policy: Optional[str] = None


@dataclass
class ExternalProductInput:
    title: str
    description: Optional[str]
    vendor: Optional[str]
    tags: list[str] = field(default_factory=list)
    options: list[tuple[str, list[str]]] = field(default_factory=list)
    variants: list[ExternalVariantInput] = field(default_factory=list)
    images: list[dict[str, str]] = field(default_factory=list)


def normalize_variant(variant: ExportVariant) -> ExportVariant:
    """Split names like ``"L/Off-White"`` into size ``L`` and color ``Off-White``.

    Only colorless variants are touched, and only when the part before the
    slash looks like a size.
    """
    if variant.color_name:
        return variant
    parts = [part.strip() for part in variant.name.split("/") if part.strip()]
    if variant.name.find("/") <= 0 or len(parts) != 2:
        return variant
    size, color = parts
    if _SIZE_LIKE_RE.match(size) or len(size) <= 4:
        return replace(variant, name=size, color_name=color)
    return variant


def _money(value: Decimal) -> str:
    return str(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def _has_size(variant: ExportVariant) -> bool:
    return bool(variant.name) and variant.name != STANDARD_VARIANT_NAME


def _first_seen(values: Iterable[str]) -> list[str]:
    return list(OrderedDict.fromkeys(values))


def _image_inputs(product: Product, images: Iterable[ProductImage]) -> list[dict[str, str]]:
    grouped: "OrderedDict[str, list[ProductImage]]" = OrderedDict()
    for image in images:
        grouped.setdefault(image.textile_color_name or DEFAULT_IMAGE_GROUP, []).append(image)

    inputs: list[dict[str, str]] = []
    for color, color_images in grouped.items():
        # Frontend images only; print files never go to the storefront.
        for image in color_images:
            if not image.image_url:
                continue
            image_type = getattr(image.image_type, "value", image.image_type)
            inputs.append({"src": image.image_url, "altText": f"{product.name} - {color} - {image_type}"})
    return inputs


def to_external_product(
    product: Product,
    variants: Iterable[ProductVariant | ExportVariant],
    *,
    images: Iterable[ProductImage] = (),
    vendor: Optional[str] = None,
    tags: Optional[list[str]] = None,
) -> ExternalProductInput:
    """Project a product and its variants onto Shopify's option/variant model.

    Both axes: one variant per (size, color), priced base + size surcharge +
    color surcharge unless a row for that exact pair exists. One axis: one
    variant per value. Neither: a single variant at the base price.
    """
    base_price = parse_cost(product.base_price, field_name="base_price")
    rows = [
        normalize_variant(row if isinstance(row, ExportVariant) else ExportVariant.from_row(row))
        for row in variants
    ]

    sizes = _first_seen(row.name for row in rows if _has_size(row))
    colors = _first_seen(row.color_name for row in rows if row.color_name)

    size_only: dict[str, ExportVariant] = {}
    color_only: dict[str, ExportVariant] = {}
    combined: dict[tuple[str, str], ExportVariant] = {}
    for row in rows:
        if row.color_name and _has_size(row):
            combined.setdefault((row.name, row.color_name), row)
        elif row.color_name:
            color_only.setdefault(row.color_name, row)
        elif _has_size(row):
            size_only.setdefault(row.name, row)

    options: list[tuple[str, list[str]]] = []
    if sizes:
        options.append((SIZE_OPTION, sizes))
    if colors:
        options.append((COLOR_OPTION, colors))

    external_variants: list[ExternalVariantInput] = []
    if sizes and colors:
        for size in sizes:
            for color in colors:
                size_row = size_only.get(size)
                color_row = color_only.get(color)
                pair_row = combined.get((size, color))
                if pair_row is not None:
                    price = base_price + pair_row.additional_price
                    sku = pair_row.sku or (size_row.sku if size_row else None) or (color_row.sku if color_row else None)
                else:
                    price = base_price
                    price += size_row.additional_price if size_row else Decimal("0")
                    price += color_row.additional_price if color_row else Decimal("0")
                    sku = (size_row.sku if size_row else None) or (color_row.sku if color_row else None)
                external_variants.append(
                    ExternalVariantInput(
                        price=_money(price),
                        option_values=[(SIZE_OPTION, size), (COLOR_OPTION, color)],
                        sku=sku or None,
                    )
                )
    elif sizes:
        for size in sizes:
            row = size_only.get(size)
            external_variants.append(
                ExternalVariantInput(
                    price=_money(base_price + (row.additional_price if row else Decimal("0"))),
                    option_values=[(SIZE_OPTION, size)],
                    sku=(row.sku if row else None) or None,
                )
            )
    elif colors:
        for color in colors:
            row = color_only.get(color)
            external_variants.append(
                ExternalVariantInput(
                    price=_money(base_price + (row.additional_price if row else Decimal("0"))),
                    option_values=[(COLOR_OPTION, color)],
                    sku=(row.sku if row else None) or None,
                )
            )
    else:
        external_variants.append(ExternalVariantInput(price=_money(base_price)))

    return ExternalProductInput(
        title=product.name,
        description=product.description or None,
        vendor=vendor,
        tags=list(tags or []),
        options=options,
        variants=external_variants,
        images=_image_inputs(product, images),
    )


def _translate_api_error(exc: ShopifyApiError) -> UpstreamFailureError:
    if exc.timed_out:
        return UpstreamTimeoutError(message=str(exc), product_gid=exc.product_gid)
    return UpstreamFailureError(
        message=str(exc),
        upstream_status=exc.upstream_status,
        field_errors=exc.user_errors,
        status_code=exc.status_code if exc.status_code in (400, 422) else None,
        product_gid=exc.product_gid,
    )


async def export_product(
    session: Session,
    *,
    product_id: str,
    shop_domain: Optional[str] = None,
    access_token: Optional[str] = None,
    client: Optional[ShopifyApiClient] = None,
) -> dict[str, Any]:
    product = ProductsRepository(session).get(product_id=product_id)
    if not product:
        raise NotFoundError(message="Product not found")

    if not shop_domain or not access_token:
        connection = ShopifyConnectionsRepository(session).get_active()
        if connection is None:
            raise NotFoundError(
                message="No Shopify connection configured; pass shopDomain and accessToken or save a connection"
            )
        shop_domain = shop_domain or connection.shop_domain
        access_token = access_token or connection.access_token

    variants = ProductVariantsRepository(session).list_by_product(product_id=product_id, active_only=True)
    images = ProductImagesRepository(session).list_by_product(product_id=product_id)
    product_input = to_external_product(product, variants, images=images, vendor=settings.SHOPIFY_DEFAULT_VENDOR)

    api = client or ShopifyApiClient()
    try:
        created = await api.create_product(shop_domain=shop_domain, access_token=access_token, product=product_input)
    except ShopifyApiError as exc:
        logger.warning(
            "Shopify export failed",
            extra={
                "product_id": product_id,
                "status_code": exc.status_code,
                "user_errors": exc.user_errors,
                "shopify_product_id": exc.product_gid,
            },
        )
        if exc.product_gid:
            # Record the half-built remote product so it can be found and finished.
            ShopifyProductMappingsRepository(session).upsert(
                product_id=product_id,
                shopify_product_id=exc.product_gid,
                synced_at=datetime.now(timezone.utc),
            )
        raise _translate_api_error(exc) from exc

    mapping = ShopifyProductMappingsRepository(session).upsert(
        product_id=product_id,
        shopify_product_id=created["productGid"],
        synced_at=datetime.now(timezone.utc),
    )
    logger.info(
        "Product exported to Shopify",
        extra={"product_id": product_id, "shopify_product_id": created["productGid"]},
    )
    return {
        "product": created,
        "mapping_id": mapping.id,
        "message": f'Product "{product.name}" exported to Shopify',
    }
