from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

STANDARD_VARIANT_NAME = "Standard"


@dataclass(frozen=True)
class VariantSpec:
    name: str
    color_name: Optional[str] = None

    def as_row(self) -> dict[str, Any]:
        return {"name": self.name, "color_name": self.color_name}


def _distinct(values: Iterable[Any] | None) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values or []:
        if value is None:
            continue
        text = str(value).strip()
        if not text or text in seen:
            continue
        seen.add(text)
        ordered.append(text)
    return ordered


def build_variants(colors: Iterable[Any] | None, sizes: Iterable[Any] | None) -> list[VariantSpec]:
    """Expand selected colors and sizes into purchasable variants.

    Both axes give one variant per (size, color); colors alone give one
    ``Standard`` variant per color; sizes alone give one colorless variant per
    size; nothing selected gives nothing.
    """
    distinct_colors = _distinct(colors)
    distinct_sizes = _distinct(sizes)

    if distinct_colors and distinct_sizes:
        return [VariantSpec(name=size, color_name=color) for size in distinct_sizes for color in distinct_colors]
    if distinct_colors:
        return [VariantSpec(name=STANDARD_VARIANT_NAME, color_name=color) for color in distinct_colors]
    if distinct_sizes:
        return [VariantSpec(name=size) for size in distinct_sizes]
    return []
