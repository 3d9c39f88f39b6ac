from typing import Optional

from sqlalchemy import select, update

from schoolshop.db.enums import LeadConfigurationStatusEnum
from schoolshop.db.models import LeadConfiguration
from schoolshop.db.repositories.base import Repository


class LeadConfigurationsRepository(Repository):
    def get(self, *, config_id: str) -> Optional[LeadConfiguration]:
        stmt = select(LeadConfiguration).where(LeadConfiguration.id == config_id)
        return self.session.scalars(stmt).first()

    def get_for_update(self, *, config_id: str) -> Optional[LeadConfiguration]:
        """Load the configuration with a row lock held until the next commit (no-op on SQLite)."""
        stmt = (
            select(LeadConfiguration)
            .where(LeadConfiguration.id == config_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.scalars(stmt).first()

    def attach_shop(self, *, config_id: str, shop_id: str) -> bool:
        """Set shop_id only while it is still unset. Returns False when another writer got there first."""
        stmt = (
            update(LeadConfiguration)
            .where(LeadConfiguration.id == config_id, LeadConfiguration.shop_id.is_(None))
            .values(shop_id=shop_id)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount == 1

    def set_status(
        self, *, config_id: str, status: LeadConfigurationStatusEnum
    ) -> Optional[LeadConfiguration]:
        config = self.get(config_id=config_id)
        if not config:
            return None
        config.status = status
        self.session.commit()
        self.session.refresh(config)
        return config
