import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_schoolshop.db")
os.environ.setdefault("MEDIA_STORAGE_PUBLIC_BASE_URL", "https://storage.example.com")
os.environ.setdefault("MEDIA_STORAGE_IMAGE_BUCKET", "product-images")
os.environ.setdefault("MEDIA_STORAGE_PRINT_BUCKET", "print-files")

from fastapi.testclient import TestClient  # noqa: E402

from schoolshop.auth.dependencies import AuthContext, get_current_user  # noqa: E402
from schoolshop.db.base import Base, SessionLocal, engine  # noqa: E402
from schoolshop.db.deps import get_session  # noqa: E402
from schoolshop.db.enums import LeadConfigurationStatusEnum  # noqa: E402
from schoolshop.db.models import AdminUser, HandlingCost, LeadConfiguration, School, Textile  # noqa: E402
from schoolshop.errors import UpstreamFailureError  # noqa: E402
from schoolshop.main import app  # noqa: E402
from schoolshop.routers import products as products_router  # noqa: E402
from schoolshop.routers import shopify as shopify_router  # noqa: E402
from schoolshop.services.storage_paths import public_url  # noqa: E402

ADMIN_USER_ID = "admin-user"


class FakeMediaStorage:
    """In-memory stand-in for MediaStorage with the same keyword API."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], tuple[bytes, Optional[str]]] = {}
        self.uploads: list[tuple[str, str]] = []
        self.deletes: list[tuple[str, str]] = []
        self.failing_uploads: set[str] = set()

    def put(self, bucket: str, key: str, data: bytes = b"img", content_type: Optional[str] = "image/png") -> str:
        self.objects[(bucket, key)] = (data, content_type)
        return public_url(bucket, key)

    def object_exists(self, *, bucket: str, key: str) -> bool:
        return (bucket, key) in self.objects

    def upload_bytes(self, *, bucket, key, data, content_type, overwrite=True) -> None:
        if any(marker in key for marker in self.failing_uploads):
            raise UpstreamFailureError(message=f"upload failed for {bucket}/{key}", upstream_status=500)
        self.uploads.append((bucket, key))
        self.objects[(bucket, key)] = (data, content_type)

    def download_bytes(self, *, bucket, key):
        if (bucket, key) not in self.objects:
            raise UpstreamFailureError(message=f"missing {bucket}/{key}", upstream_status=404)
        return self.objects[(bucket, key)]

    def list_prefix(self, *, bucket, prefix):
        return sorted(key for stored_bucket, key in self.objects if stored_bucket == bucket and key.startswith(prefix))

    def delete_object(self, *, bucket, key) -> bool:
        self.deletes.append((bucket, key))
        return self.objects.pop((bucket, key), None) is not None

    def public_url(self, *, bucket, key) -> str:
        return public_url(bucket, key)


@pytest.fixture()
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def fake_storage() -> FakeMediaStorage:
    return FakeMediaStorage()


@pytest.fixture()
def auth_context() -> AuthContext:
    return AuthContext(user_id=ADMIN_USER_ID)


@pytest.fixture()
def admin_user(db_session) -> AdminUser:
    admin = AdminUser(user_id=ADMIN_USER_ID, email="admin@example.com")
    db_session.add(admin)
    db_session.commit()
    return admin


@pytest.fixture()
def override_dependencies(db_session, auth_context, fake_storage):
    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    def get_user_override():
        return auth_context

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_current_user] = get_user_override
    app.dependency_overrides[products_router.get_media_storage] = lambda: fake_storage
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def api_client(override_dependencies):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def shopify_client_override():
    def _install(client):
        app.dependency_overrides[shopify_router.get_shopify_client] = lambda: client

    return _install


@pytest.fixture()
def school(db_session) -> School:
    school = School(name="Gymnasium Am Park", short_code="GAP", city="Berlin")
    db_session.add(school)
    db_session.commit()
    db_session.refresh(school)
    return school


@pytest.fixture()
def textile(db_session) -> Textile:
    textile = Textile(
        id="T1",
        name="Organic Hoodie",
        brand="Stanley/Stella",
        base_price=Decimal("10.00"),
        available_colors=["Rot", "Blau"],
        available_sizes=["S", "M", "L"],
        active=True,
    )
    db_session.add(textile)
    db_session.add(HandlingCost(cost_per_order=Decimal("1.00"), active=True))
    db_session.commit()
    db_session.refresh(textile)
    return textile


@pytest.fixture()
def make_config(db_session, school):
    def _make(
        *,
        selected_textiles,
        status=LeadConfigurationStatusEnum.draft,
        shop_id=None,
        print_positions=None,
        price_calculation=None,
        quantity=None,
    ) -> LeadConfiguration:
        config = LeadConfiguration(
            school_id=school.id,
            shop_id=shop_id,
            status=status,
            selected_textiles=selected_textiles,
            print_positions=print_positions or {},
            price_calculation=price_calculation or {},
            quantity=quantity,
        )
        db_session.add(config)
        db_session.commit()
        db_session.refresh(config)
        return config

    return _make
