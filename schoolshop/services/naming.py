from __future__ import annotations

import re

_NON_TOKEN_RE = re.compile(r"[^a-z0-9]+")

DEFAULT_FALLBACK = "x"


def normalize(text: str | None, fallback: str = DEFAULT_FALLBACK) -> str:
    """Turn free text into a lowercase ``[a-z0-9_]`` token usable in file names and URLs.

    Runs of other characters collapse into one ``_`` and edge underscores are
    dropped. ``None`` and texts that normalize to nothing yield ``fallback``.
    """
    raw = fallback if text is None else str(text)
    token = _NON_TOKEN_RE.sub("_", raw.lower()).strip("_")
    return token or fallback


def image_type_label(image_type: str | None) -> str:
    value = getattr(image_type, "value", image_type)
    if value == "front":
        return "front"
    if value == "back":
        return "back"
    return "side"


def attributed_image_filename(
    *,
    shop_slug: str | None,
    product_name: str | None,
    color: str | None,
    image_type: str | None,
    extension: str,
) -> str:
    """Deterministic ``shop_product_color_type.ext`` name for a color attributed image."""
    stem = "_".join(
        [
            normalize(shop_slug or "shop"),
            normalize(product_name),
            normalize(color),
            image_type_label(image_type),
        ]
    )
    return f"{stem}.{extension}" if extension else stem
