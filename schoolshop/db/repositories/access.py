from sqlalchemy import select

from schoolshop.db.models import AdminUser, UserRole
from schoolshop.db.repositories.base import Repository


class AccessRepository(Repository):
    def is_admin(self, *, user_id: str) -> bool:
        stmt = select(AdminUser.id).where(AdminUser.user_id == user_id).limit(1)
        return self.session.execute(stmt).first() is not None

    def has_school_role(self, *, user_id: str, school_id: str) -> bool:
        stmt = (
            select(UserRole.id)
            .where(UserRole.user_id == user_id, UserRole.school_id == school_id)
            .limit(1)
        )
        return self.session.execute(stmt).first() is not None
