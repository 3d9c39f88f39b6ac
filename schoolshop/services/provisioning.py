from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from schoolshop.auth.dependencies import AuthContext, ensure_admin, ensure_school_access
from schoolshop.config import settings
from schoolshop.db.enums import LeadConfigurationStatusEnum, ShopStatusEnum
from schoolshop.db.models import LeadConfiguration, School, Textile
from schoolshop.db.repositories.catalog import CostsRepository, TextilesRepository
from schoolshop.db.repositories.lead_configurations import LeadConfigurationsRepository
from schoolshop.db.repositories.products import ProductsRepository, ProductVariantsRepository
from schoolshop.db.repositories.schools import SchoolsRepository, ShopsRepository
from schoolshop.errors import (
    AlreadyProvisionedError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    ServiceError,
)
from schoolshop.services.naming import normalize
from schoolshop.services.pricing import parse_cost, quantize_money, resolve_for_textile
from schoolshop.services.results import ItemResult, OperationResult
from schoolshop.services.variant_matrix import build_variants

logger = logging.getLogger(__name__)

_SLUG_ATTEMPTS = 5


@dataclass
class ConfirmResult:
    shop_id: str
    shop_created: bool
    status: LeadConfigurationStatusEnum


@dataclass(frozen=True)
class SelectedTextile:
    textile_id: str
    colors: list[Any]
    sizes: list[Any]


def _parse_selected_textiles(raw: Any) -> list[SelectedTextile]:
    if not isinstance(raw, list):
        raise InvalidInputError(message="selected_textiles must be a list", field="selected_textiles")
    selected: list[SelectedTextile] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict) or not entry.get("textile_id"):
            raise InvalidInputError(
                message=f"selected_textiles[{index}] is missing textile_id", field="selected_textiles"
            )
        textile_id = str(entry["textile_id"])
        if textile_id in seen:
            # One product per textile; a repeated entry adds nothing.
            continue
        seen.add(textile_id)
        colors = entry.get("colors") or []
        sizes = entry.get("sizes") or []
        if not isinstance(colors, list) or not isinstance(sizes, list):
            raise InvalidInputError(
                message=f"selected_textiles[{index}] colors and sizes must be lists", field="selected_textiles"
            )
        selected.append(SelectedTextile(textile_id=textile_id, colors=colors, sizes=sizes))
    return selected


def _shop_slug_base(school: School) -> str:
    return normalize(school.short_code or school.name, "shop")


def _create_shop(session: Session, school: School):
    shops = ShopsRepository(session)
    base = _shop_slug_base(school)
    for _ in range(_SLUG_ATTEMPTS):
        slug = f"{base}-{uuid4().hex[:8]}"
        if not shops.slug_exists(slug=slug):
            break
    else:
        raise InvalidStateError(message=f"Could not find a free shop slug for {base}")
    return shops.create(
        school_id=school.id,
        name=school.name or "Shop",
        slug=slug,
        status=ShopStatusEnum.draft,
        currency=settings.SHOP_DEFAULT_CURRENCY,
    )


def confirm(session: Session, *, config_id: str, auth: AuthContext) -> ConfirmResult:
    """Approve a configuration and make sure it is linked to a shop.

    The shop link is written only while it is unset; a concurrent confirm that
    loses the race adopts the winner's shop.
    """
    configs = LeadConfigurationsRepository(session)
    config = configs.get(config_id=config_id)
    if not config:
        raise NotFoundError(message="Lead configuration not found")
    ensure_school_access(session, auth, school_id=config.school_id)

    shop_id = config.shop_id
    shop_created = False
    if not shop_id:
        school = SchoolsRepository(session).get(school_id=config.school_id)
        if not school:
            raise NotFoundError(message="School not found")
        shop = _create_shop(session, school)
        if configs.attach_shop(config_id=config_id, shop_id=shop.id):
            shop_id = shop.id
            shop_created = True
            logger.info(
                "Shop created for lead configuration",
                extra={"config_id": config_id, "shop_id": shop.id, "slug": shop.slug},
            )
        else:
            # Never linked to anything, so nobody else can see it.
            session.delete(shop)
            session.commit()
            session.expire_all()
            config = configs.get(config_id=config_id)
            shop_id = config.shop_id
            logger.info(
                "Lead configuration already linked to a shop; keeping it",
                extra={"config_id": config_id, "shop_id": shop_id},
            )

    config = configs.get(config_id=config_id)
    if config.status == LeadConfigurationStatusEnum.draft:
        config = configs.set_status(config_id=config_id, status=LeadConfigurationStatusEnum.approved)
        logger.info("Lead configuration approved", extra={"config_id": config_id, "shop_id": shop_id})

    return ConfirmResult(shop_id=shop_id, shop_created=shop_created, status=config.status)


def _product_name(textile: Textile) -> str:
    return f"{textile.name} - {textile.brand}" if textile.brand else textile.name


def _product_description(textile: Textile) -> str:
    return f"Textil: {textile.name} ({textile.brand})" if textile.brand else f"Textil: {textile.name}"


def _final_price(
    session: Session, config: LeadConfiguration, textile: Textile
) -> tuple[Decimal, Optional[dict[str, Any]]]:
    """Stored final price when the wizard already computed one, otherwise a freshly resolved one.

    The configuration itself is left untouched; a resolved price comes back with
    its breakdown so the caller can report it.
    """
    calculation = (config.price_calculation or {}).get(textile.id) or {}
    stored = calculation.get("final_price") if isinstance(calculation, dict) else None
    if stored is not None:
        return quantize_money(parse_cost(stored, field_name=f"price_calculation.{textile.id}.final_price")), None

    resolution = resolve_for_textile(
        CostsRepository(session),
        textile,
        positions_config=(config.print_positions or {}).get(textile.id),
        quantity=config.quantity,
        margin=config.margin,
        sponsoring=config.sponsoring,
    )
    return quantize_money(resolution.final_price), resolution.to_json()["breakdown"]


def _provision_textile(
    session: Session,
    config: LeadConfiguration,
    selected: SelectedTextile,
    textile: Optional[Textile],
    *,
    sort_index: int,
    result: OperationResult,
) -> ItemResult:
    if textile is None:
        logger.warning(
            "Selected textile missing from catalog",
            extra={"config_id": config.id, "textile_id": selected.textile_id},
        )
        return ItemResult(key=selected.textile_id, success=False, error="Textile not found")

    price, breakdown = _final_price(session, config, textile)
    try:
        product = ProductsRepository(session).create(
            shop_id=config.shop_id,
            lead_configuration_id=config.id,
            textile_id=textile.id,
            name=_product_name(textile),
            description=_product_description(textile),
            base_price=price,
            active=True,
            sort_index=sort_index,
        )
    except IntegrityError as exc:
        session.rollback()
        raise AlreadyProvisionedError(
            message="Products for this configuration are already being provisioned"
        ) from exc

    variants = build_variants(selected.colors, selected.sizes)
    if not variants:
        warning = f"{textile.id}: no colors or sizes selected, product has no variants"
        result.warnings.append(warning)
        logger.warning(
            "Product provisioned without variants",
            extra={"config_id": config.id, "textile_id": textile.id, "product_id": product.id},
        )
    else:
        ProductVariantsRepository(session).create_many(
            product_id=product.id,
            rows=[{**spec.as_row(), "active": True} for spec in variants],
        )

    data: dict[str, Any] = {"product_id": product.id, "variants": len(variants), "base_price": float(price)}
    if breakdown is not None:
        data["price_breakdown"] = breakdown
    return ItemResult(
        key=textile.id,
        success=True,
        data=data,
    )


def provision_products(session: Session, *, config_id: str, auth: AuthContext) -> OperationResult:
    """Create one product with its variants per selected textile of an approved configuration.

    Not atomic across textiles: each textile's failure is recorded in its own
    result and the remaining textiles still run.
    """
    ensure_admin(session, auth)
    configs = LeadConfigurationsRepository(session)
    config = configs.get_for_update(config_id=config_id)
    if not config:
        raise NotFoundError(message="Lead configuration not found")
    if config.status == LeadConfigurationStatusEnum.provisioned:
        raise AlreadyProvisionedError(message="Lead configuration is already provisioned")
    if config.status != LeadConfigurationStatusEnum.approved:
        raise InvalidStateError(message="Lead configuration must be approved before provisioning")
    if not config.shop_id:
        raise InvalidStateError(message="Lead configuration has no shop yet; confirm it first")

    products = ProductsRepository(session)
    if products.count_by_lead_configuration(lead_configuration_id=config.id) > 0:
        raise AlreadyProvisionedError(message="Products were already created for this configuration")

    selected_textiles = _parse_selected_textiles(config.selected_textiles)
    if not selected_textiles:
        raise InvalidInputError(message="No textiles selected", field="selected_textiles")

    textiles = {
        textile.id: textile
        for textile in TextilesRepository(session).list_by_ids(
            textile_ids=[entry.textile_id for entry in selected_textiles]
        )
    }

    result = OperationResult(data={"shop_id": config.shop_id, "config_id": config.id})
    for sort_index, selected in enumerate(selected_textiles):
        try:
            item = _provision_textile(
                session,
                config,
                selected,
                textiles.get(selected.textile_id),
                sort_index=sort_index,
                result=result,
            )
        except AlreadyProvisionedError:
            raise
        except ServiceError as exc:
            session.rollback()
            logger.warning(
                "Textile could not be provisioned",
                extra={"config_id": config.id, "textile_id": selected.textile_id, "error": exc.message},
            )
            item = ItemResult(key=selected.textile_id, success=False, error=exc.message)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception(
                "Database error while provisioning textile",
                extra={"config_id": config.id, "textile_id": selected.textile_id},
            )
            item = ItemResult(key=selected.textile_id, success=False, error=f"Database error: {exc.__class__.__name__}")
        result.add(item)

    if result.succeeded:
        configs.set_status(config_id=config.id, status=LeadConfigurationStatusEnum.provisioned)
    result.data["products_created"] = result.succeeded
    result.data["textiles_requested"] = result.attempted
    logger.info(
        "Products provisioned",
        extra={
            "config_id": config.id,
            "shop_id": config.shop_id,
            "created": result.succeeded,
            "requested": result.attempted,
        },
    )
    return result
