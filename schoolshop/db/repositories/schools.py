from typing import Any, Optional

from sqlalchemy import select

from schoolshop.db.models import School, Shop
from schoolshop.db.repositories.base import Repository


class SchoolsRepository(Repository):
    def get(self, *, school_id: str) -> Optional[School]:
        return self.session.get(School, school_id)


class ShopsRepository(Repository):
    def get(self, *, shop_id: str) -> Optional[Shop]:
        return self.session.get(Shop, shop_id)

    def slug_exists(self, *, slug: str) -> bool:
        stmt = select(Shop.id).where(Shop.slug == slug).limit(1)
        return self.session.execute(stmt).first() is not None

    def create(self, *, school_id: str, **fields: Any) -> Shop:
        shop = Shop(school_id=school_id, **fields)
        return self.save(shop)
