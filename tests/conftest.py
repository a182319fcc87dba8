import os
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

from booking_engine.core.errors import ServiceNotFound  # noqa: E402
from booking_engine.database import Base  # noqa: E402
from booking_engine.models import appointment, package_balance, schedule  # noqa: E402,F401
from booking_engine.models.package_balance import PackageBalance  # noqa: E402
from booking_engine.services.catalog_client import CatalogService  # noqa: E402


class FakeCatalog:
    def __init__(self, services: dict[int, CatalogService] | None = None):
        self.services = services if services is not None else {
            1: CatalogService(id=1, name='General consultation', price=Decimal('500.00'), currency='MXN', duration_minutes=60),
            2: CatalogService(id=2, name='Follow-up', price=Decimal('250.00'), currency='MXN', duration_minutes=30),
        }

    def get_service(self, service_id: int) -> CatalogService:
        if service_id not in self.services:
            raise ServiceNotFound(f'Service {service_id} does not exist.')
        return self.services[service_id]


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event_type, appointment) -> bool:
        self.events.append((event_type.value, appointment.id, appointment.status))
        return True


@pytest.fixture
def session_factory():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def add_balance(db):
    def _add_balance(
        consumer_id: int = 7,
        provider_id: int = 1,
        service_id: int = 1,
        remaining_credits: int = 1,
        expires_at: datetime | None = None,
    ) -> PackageBalance:
        balance = PackageBalance(
            consumer_id=consumer_id,
            provider_id=provider_id,
            service_id=service_id,
            remaining_credits=remaining_credits,
            expires_at=expires_at,
        )
        db.add(balance)
        db.commit()
        db.refresh(balance)
        return balance

    return _add_balance
