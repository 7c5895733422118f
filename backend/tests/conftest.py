# backend/tests/conftest.py
"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database (one connection shared
through ``StaticPool``) and a clock frozen at Monday 2030-01-07 10:00 in the
store timezone. The default store opens Monday to Friday 08:00-18:00, requires
two hours of notice and accepts bookings up to 30 days ahead.
"""

import pytest
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from agenda.core.enums import UserRole
from agenda.database import Base, build_engine
import agenda.models  # noqa: F401
from agenda.models import Company, Coupon, Service, Store, User
from agenda.services.tenant_scope import TenantScope

from .factories import FrozenClock, at, make_coupon, make_service, make_store


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(at(10, 0))


# --------------------------------------------------------------------- tenants


@pytest.fixture
def company(db: Session) -> Company:
    company = Company(name="Rede Beleza")
    db.add(company)
    db.commit()
    return company


@pytest.fixture
def owner(db: Session) -> User:
    user = User(email="Owner@Example.com", name="Store Owner", role=UserRole.STORE_OWNER.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin_user(db: Session) -> User:
    user = User(email="admin@example.com", name="Platform Admin", role=UserRole.ADMIN.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def client_user(db: Session) -> User:
    user = User(email="maria@example.com", name="Maria Silva", role=UserRole.CLIENT.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def store(db: Session, owner: User) -> Store:
    return make_store(db, "salao-central", owner=owner)


@pytest.fixture
def service(db: Session, store: Store) -> Service:
    return make_service(db, store)


@pytest.fixture
def coupon(db: Session, store: Store) -> Coupon:
    return make_coupon(db, store)


# --------------------------------------------------------------------- scopes


@pytest.fixture
def public_scope() -> TenantScope:
    return TenantScope.public()


@pytest.fixture
def owner_scope(owner: User) -> TenantScope:
    return TenantScope.for_user(owner)


@pytest.fixture
def admin_scope(admin_user: User) -> TenantScope:
    return TenantScope.for_user(admin_user)
