from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from schoolshop.db.enums import PrintPositionEnum
from schoolshop.db.models import HandlingCost, Textile, TextilePrice
from schoolshop.db.repositories.catalog import CostsRepository
from schoolshop.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TIER_50_THRESHOLD = 50
TIER_100_THRESHOLD = 100
_CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def parse_cost(value: Any, *, field_name: str) -> Decimal:
    """Parse an admin-entered cost. Anything that is not a finite number is rejected."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(message=f"{field_name} is not a number: {value!r}", field=field_name)
    try:
        parsed = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(message=f"{field_name} is not a number: {value!r}", field=field_name) from exc
    if not parsed.is_finite():
        raise ValidationError(message=f"{field_name} is not a finite number: {value!r}", field=field_name)
    return parsed


def _parse_optional_cost(value: Any, *, field_name: str) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_cost(value, field_name=field_name)


def _parse_adjustment(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        parsed = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return parsed if parsed.is_finite() else Decimal("0")


@dataclass(frozen=True)
class PositionCost:
    position: str
    cost_per_unit: Any
    cost_50_units: Any = None
    cost_100_units: Any = None
    source: str = "print_method_costs"


@dataclass
class PriceResolution:
    final_price: Decimal
    breakdown: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        """Rounded, JSON friendly view for persisting on the configuration."""
        return {
            "final_price": float(quantize_money(self.final_price)),
            "breakdown": {
                "base_price": float(quantize_money(self.breakdown["base_price"])),
                "base_source": self.breakdown["base_source"],
                "print_costs": [
                    {**entry, "cost": float(quantize_money(entry["cost"]))}
                    for entry in self.breakdown["print_costs"]
                ],
                "handling_cost": float(quantize_money(self.breakdown["handling_cost"])),
                "margin": float(quantize_money(self.breakdown["margin"])),
                "sponsoring": float(quantize_money(self.breakdown["sponsoring"])),
                "quantity": self.breakdown["quantity"],
            },
        }


def _select_tier(cost: PositionCost, quantity: Optional[int]) -> tuple[Decimal, str]:
    per_unit = parse_cost(cost.cost_per_unit, field_name="cost_per_unit")
    tier_50 = _parse_optional_cost(cost.cost_50_units, field_name="cost_50_units")
    tier_100 = _parse_optional_cost(cost.cost_100_units, field_name="cost_100_units")
    qty = quantity or 0
    if qty >= TIER_100_THRESHOLD and tier_100 is not None:
        return tier_100, "cost_100_units"
    if qty >= TIER_50_THRESHOLD and tier_50 is not None:
        return tier_50, "cost_50_units"
    return per_unit, "cost_per_unit"


def _resolve_base(textile: Textile, override_price: TextilePrice | Any | None) -> tuple[Decimal, str]:
    if isinstance(override_price, TextilePrice):
        if override_price.active:
            return parse_cost(override_price.price, field_name="textile_price"), "textile_prices"
    elif override_price is not None:
        return parse_cost(override_price, field_name="override_price"), "override"
    return parse_cost(textile.base_price, field_name="base_price"), "textile_catalog"


def resolve_final_price(
    textile: Textile,
    override_price: TextilePrice | Any | None,
    print_costs: list[PositionCost],
    handling_cost: HandlingCost | Any | None,
    *,
    quantity: Optional[int] = None,
    margin: Any = None,
    sponsoring: Any = None,
) -> PriceResolution:
    """Per-unit price for one textile.

    base (override or catalog) + one print cost per selected position (tiered by
    quantity) + the handling cost as a flat addend + margin - sponsoring. No
    rounding happens here; callers round when they persist.
    """
    base_price, base_source = _resolve_base(textile, override_price)

    total = base_price
    print_entries: list[dict[str, Any]] = []
    for cost in print_costs:
        amount, tier = _select_tier(cost, quantity)
        total += amount
        print_entries.append({"position": cost.position, "tier": tier, "source": cost.source, "cost": amount})

    if isinstance(handling_cost, HandlingCost):
        handling = parse_cost(handling_cost.cost_per_order, field_name="cost_per_order")
    elif handling_cost is None:
        handling = Decimal("0")
    else:
        handling = parse_cost(handling_cost, field_name="cost_per_order")
    # Flat addend on the unit price, not spread over the order quantity.
    total += handling

    margin_value = _parse_adjustment(margin)
    sponsoring_value = _parse_adjustment(sponsoring)
    total = total + margin_value - sponsoring_value
    if total < 0:
        total = Decimal("0")

    return PriceResolution(
        final_price=total,
        breakdown={
            "base_price": base_price,
            "base_source": base_source,
            "print_costs": print_entries,
            "handling_cost": handling,
            "margin": margin_value,
            "sponsoring": sponsoring_value,
            "quantity": quantity,
        },
    )


def _selected_positions(positions_config: Mapping[str, Any] | None) -> list[tuple[str, Mapping[str, Any]]]:
    selected: list[tuple[str, Mapping[str, Any]]] = []
    for position in PrintPositionEnum:
        entry = (positions_config or {}).get(position.value)
        if not entry:
            continue
        if entry is True:
            entry = {}
        if not isinstance(entry, Mapping):
            raise ValidationError(
                message=f"Print position {position.value} must be an object", field=f"print_positions.{position.value}"
            )
        if entry.get("active") is False:
            continue
        selected.append((position.value, entry))
    return selected


def collect_print_costs(costs: CostsRepository, positions_config: Mapping[str, Any] | None) -> list[PositionCost]:
    """Look up the active cost row for every selected print position of one textile."""
    collected: list[PositionCost] = []
    for position, entry in _selected_positions(positions_config):
        method_id = entry.get("print_method_id")
        if method_id:
            method_cost = costs.active_print_method_cost(print_method_id=str(method_id))
            if method_cost is None:
                raise NotFoundError(message=f"No active print method cost for print method {method_id}")
            collected.append(
                PositionCost(
                    position=position,
                    cost_per_unit=method_cost.cost_per_unit,
                    cost_50_units=method_cost.cost_50_units,
                    cost_100_units=method_cost.cost_100_units,
                    source="print_method_costs",
                )
            )
            continue
        position_costs = costs.active_print_costs(position=PrintPositionEnum(position))
        if not position_costs:
            raise NotFoundError(message=f"No active print cost for position {position}")
        if len(position_costs) > 1:
            logger.warning(
                "More than one active print cost for position; using the first",
                extra={"position": position, "print_cost_ids": [row.id for row in position_costs]},
            )
        collected.append(
            PositionCost(position=position, cost_per_unit=position_costs[0].cost_per_unit, source="print_costs")
        )
    return collected


def resolve_for_textile(
    costs: CostsRepository,
    textile: Textile,
    *,
    positions_config: Mapping[str, Any] | None,
    quantity: Optional[int],
    margin: Any = None,
    sponsoring: Any = None,
) -> PriceResolution:
    return resolve_final_price(
        textile,
        costs.active_textile_price(textile_id=textile.id),
        collect_print_costs(costs, positions_config),
        costs.active_handling_cost(),
        quantity=quantity,
        margin=margin,
        sponsoring=sponsoring,
    )
