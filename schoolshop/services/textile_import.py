from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolshop.db.repositories.catalog import TextilesRepository

logger = logging.getLogger(__name__)


@dataclass
class TextileImportReport:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def parse_json_array(raw: str | None) -> list[Any]:
    """Parse a JSON array cell such as ``'["S", "M"]'``; anything unreadable becomes ``[]``."""
    if not raw or not raw.strip():
        return []
    cleaned = raw.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in ("'", '"'):
        cleaned = cleaned[1:-1]
    cleaned = cleaned.replace('""', '"')
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        logger.warning("Could not parse JSON array cell", extra={"cell": raw[:50]})
        return []
    return parsed if isinstance(parsed, list) else []


def parse_rows(rows: Iterable[dict[str, Any]], report: TextileImportReport) -> list[dict[str, Any]]:
    textiles: list[dict[str, Any]] = []
    for line_number, row in enumerate(rows, start=2):
        cleaned = {(key or "").strip(): (value or "").strip() for key, value in row.items()}
        textile_id = cleaned.get("id")
        name = cleaned.get("produktname")
        if not textile_id or not name:
            logger.warning("Row without id or product name skipped", extra={"line": line_number})
            report.skipped += 1
            continue
        textiles.append(
            {
                "id": textile_id,
                "name": name,
                "brand": cleaned.get("herstellername") or None,
                "available_colors": parse_json_array(cleaned.get("produktfarben")),
                "available_sizes": parse_json_array(cleaned.get("produktgrößen")),
            }
        )
    return textiles


def read_csv(content: str) -> list[dict[str, Any]]:
    return list(csv.DictReader(io.StringIO(content)))


def import_textiles(session: Session, content: str) -> TextileImportReport:
    """Upsert catalog rows from a textile export CSV.

    New rows start with ``base_price`` 0 and ``active``; existing rows only get
    name, brand, colors and sizes refreshed.
    """
    report = TextileImportReport()
    repo = TextilesRepository(session)
    for textile in parse_rows(read_csv(content), report):
        textile_id = textile.pop("id")
        fields = dict(textile)
        if repo.get(textile_id=textile_id) is None:
            fields.update({"base_price": Decimal("0"), "active": True})
        try:
            _, created = repo.upsert(textile_id=textile_id, **fields)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Textile import failed", extra={"textile_id": textile_id})
            report.errors.append(f"{textile_id}: {exc}")
            continue
        if created:
            report.created += 1
        else:
            report.updated += 1
    return report
