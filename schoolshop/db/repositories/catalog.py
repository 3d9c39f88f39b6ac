from __future__ import annotations

import logging
from typing import Any, Optional, TypeVar

from sqlalchemy import select

from schoolshop.db.enums import PrintPositionEnum
from schoolshop.db.models import HandlingCost, PrintCost, PrintMethodCost, Textile, TextilePrice
from schoolshop.db.repositories.base import Repository

logger = logging.getLogger(__name__)

_CostRow = TypeVar("_CostRow", TextilePrice, PrintMethodCost, HandlingCost)


class TextilesRepository(Repository):
    def get(self, *, textile_id: str) -> Optional[Textile]:
        return self.session.get(Textile, textile_id)

    def list_by_ids(self, *, textile_ids: list[str]) -> list[Textile]:
        if not textile_ids:
            return []
        stmt = select(Textile).where(Textile.id.in_(textile_ids))
        return list(self.session.scalars(stmt).all())

    def upsert(self, *, textile_id: str, **fields: Any) -> tuple[Textile, bool]:
        """Insert or update a catalog row by id. Returns (row, created)."""
        textile = self.get(textile_id=textile_id)
        created = textile is None
        if textile is None:
            textile = Textile(id=textile_id, **fields)
            self.session.add(textile)
        else:
            for key, value in fields.items():
                setattr(textile, key, value)
        self.session.commit()
        self.session.refresh(textile)
        return textile, created


class CostsRepository(Repository):
    """Read-only access to admin managed cost tables.

    Only active rows count. When more than one row is active the most recently
    created wins; that state is a data-quality problem and gets logged.
    """

    def _latest_active(self, stmt, *, table: str, key: str | None = None) -> Optional[_CostRow]:
        rows = list(self.session.scalars(stmt).all())
        if len(rows) > 1:
            logger.warning(
                "More than one active cost row; using the most recent",
                extra={"table": table, "key": key, "row_ids": [str(row.id) for row in rows]},
            )
        return rows[0] if rows else None

    def active_textile_price(self, *, textile_id: str) -> Optional[TextilePrice]:
        stmt = (
            select(TextilePrice)
            .where(TextilePrice.textile_id == textile_id, TextilePrice.active.is_(True))
            .order_by(TextilePrice.created_at.desc(), TextilePrice.id.desc())
        )
        return self._latest_active(stmt, table="textile_prices", key=textile_id)

    def active_print_method_cost(self, *, print_method_id: str) -> Optional[PrintMethodCost]:
        stmt = (
            select(PrintMethodCost)
            .where(
                PrintMethodCost.print_method_id == print_method_id,
                PrintMethodCost.active.is_(True),
            )
            .order_by(PrintMethodCost.created_at.desc(), PrintMethodCost.id.desc())
        )
        return self._latest_active(stmt, table="print_method_costs", key=print_method_id)

    def active_handling_cost(self) -> Optional[HandlingCost]:
        stmt = (
            select(HandlingCost)
            .where(HandlingCost.active.is_(True))
            .order_by(HandlingCost.created_at.desc(), HandlingCost.id.desc())
        )
        return self._latest_active(stmt, table="handling_costs")

    def active_print_costs(self, *, position: PrintPositionEnum | None = None) -> list[PrintCost]:
        stmt = select(PrintCost).where(PrintCost.active.is_(True))
        if position is not None:
            stmt = stmt.where(PrintCost.position == position)
        stmt = stmt.order_by(PrintCost.position.asc(), PrintCost.name.asc())
        return list(self.session.scalars(stmt).all())
