from datetime import datetime
from typing import Optional

from sqlalchemy import select

from schoolshop.db.models import ShopifyConnection, ShopifyProductMapping
from schoolshop.db.repositories.base import Repository


class ShopifyConnectionsRepository(Repository):
    def get_active(self) -> Optional[ShopifyConnection]:
        stmt = (
            select(ShopifyConnection)
            .where(ShopifyConnection.active.is_(True))
            .order_by(ShopifyConnection.created_at.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()


class ShopifyProductMappingsRepository(Repository):
    def get_by_product(self, *, product_id: str) -> Optional[ShopifyProductMapping]:
        stmt = select(ShopifyProductMapping).where(ShopifyProductMapping.product_id == product_id)
        return self.session.scalars(stmt).first()

    def upsert(self, *, product_id: str, shopify_product_id: str, synced_at: datetime) -> ShopifyProductMapping:
        mapping = self.get_by_product(product_id=product_id)
        if mapping is None:
            mapping = ShopifyProductMapping(product_id=product_id)
            self.session.add(mapping)
        mapping.shopify_product_id = shopify_product_id
        mapping.last_synced_at = synced_at
        self.session.commit()
        self.session.refresh(mapping)
        return mapping
