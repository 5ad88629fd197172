"""
Pytest configuration and fixtures for backend tests.

Tests run against SQLite in memory and a dict-backed Redis stand-in, so
neither PostgreSQL nor a Redis server is needed.
"""

import os

# Must be set before the application modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "testing")

from decimal import Decimal

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_api.main import app
from inventory_api.models import (
    Base,
    Branch,
    BranchProduct,
    Category,
    Product,
    Sale,
    SaleItem,
    Tenant,
    User,
    UserBranch,
)
from inventory_shared.config.constants import Roles
from inventory_shared.infrastructure.db import get_db
from inventory_shared.infrastructure.redis import get_redis_sync_client
from inventory_shared.security.auth import sign_jwt


# SQLite in-memory database for testing
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeRedis:
    """
    In-memory replacement for the redis commands the branch context uses.

    Values are stored as strings, like a client created with
    ``decode_responses=True``. TTLs are recorded but never expire.
    """

    def __init__(self):
        self.store: dict[str, object] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key):
        value = self.store.get(key)
        return value if isinstance(value, str) else None

    def setex(self, key, ttl, value):
        self.store[key] = str(value)
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def hget(self, key, field):
        return self.store.get(key, {}).get(field)

    def hset(self, key, field, value):
        self.store.setdefault(key, {})[field] = str(value)
        return 1

    def hdel(self, key, *fields):
        mapping = self.store.get(key, {})
        return sum(1 for field in fields if mapping.pop(field, None) is not None)

    def expire(self, key, ttl):
        self.ttls[key] = ttl
        return True

    def ping(self):
        return True


class BrokenRedis:
    """Every command fails as if the server were unreachable."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.ConnectionError("Connection refused")
        return fail


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture(scope="function")
def client(db_session, fake_redis):
    """
    Create a test client with database and Redis overrides.

    The lifespan is not entered, so no tables are created on the
    application engine.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_sync_client] = lambda: fake_redis

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


# =============================================================================
# Tenants, branches and users
# =============================================================================


@pytest.fixture
def seed_tenant(db_session):
    tenant = Tenant(name="Test Hardware", slug="test-hardware")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def other_tenant(db_session):
    tenant = Tenant(name="Other Hardware", slug="other-hardware")
    db_session.add(tenant)
    db_session.commit()
    return tenant


def _branch(tenant, code, name, is_default=False, **kwargs):
    return Branch(tenant_id=tenant.id, code=code, name=name, is_default=is_default, **kwargs)


@pytest.fixture
def branches(db_session, seed_tenant):
    """Four branches of the test tenant; ``main`` is the default branch."""
    rows = {
        "main": _branch(seed_tenant, "MAIN", "Main Store", is_default=True),
        "north": _branch(seed_tenant, "NORTH", "North Store"),
        "south": _branch(seed_tenant, "SOUTH", "South Store"),
        "east": _branch(seed_tenant, "EAST", "East Warehouse"),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture
def foreign_branch(db_session, other_tenant):
    branch = _branch(other_tenant, "MAIN", "Other Main", is_default=True)
    db_session.add(branch)
    db_session.commit()
    return branch


def _user(db_session, tenant, email, role, branch_list=(), **kwargs):
    user = User(
        tenant_id=tenant.id if tenant else None,
        email=email,
        name=email.split("@")[0].title(),
        role=role,
        **kwargs,
    )
    db_session.add(user)
    db_session.flush()
    for branch in branch_list:
        db_session.add(UserBranch(user_id=user.id, branch_id=branch.id))
    db_session.commit()
    return user


@pytest.fixture
def owner(db_session, seed_tenant, branches):
    """Tenant admin without explicit assignments."""
    return _user(db_session, seed_tenant, "owner@test.com", Roles.OWNER)


@pytest.fixture
def manager(db_session, seed_tenant, branches):
    """Assigned to the north and south branches."""
    return _user(
        db_session,
        seed_tenant,
        "manager@test.com",
        Roles.MANAGER,
        [branches["north"], branches["south"]],
    )


@pytest.fixture
def staff(db_session, seed_tenant, branches):
    """Assigned to the south branch only."""
    return _user(db_session, seed_tenant, "staff@test.com", Roles.STAFF, [branches["south"]])


@pytest.fixture
def unassigned_staff(db_session, seed_tenant, branches):
    return _user(db_session, seed_tenant, "nobody@test.com", Roles.STAFF)


@pytest.fixture
def super_admin(db_session, branches):
    return _user(db_session, None, "root@platform.com", Roles.ADMIN, is_super_admin=True)


# =============================================================================
# Catalog and sales
# =============================================================================


@pytest.fixture
def seed_category(db_session, seed_tenant):
    category = Category(tenant_id=seed_tenant.id, name="Tools")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def make_product(db_session, seed_tenant):
    """
    Factory creating a product assigned to the given branches.

    Usage:
        product = make_product([branches["main"], branches["north"]], sku="HAM-1")
    """
    counter = {"n": 0}

    def factory(branch_list=(), tenant=None, stock=10, min_stock=2, price="9.99", **kwargs):
        counter["n"] += 1
        tenant = tenant or seed_tenant
        product = Product(
            tenant_id=tenant.id,
            name=kwargs.pop("name", f"Product {counter['n']}"),
            sku=kwargs.pop("sku", f"SKU-{tenant.id}-{counter['n']}"),
            cost_price=Decimal("5.00"),
            selling_price=Decimal(price),
            stock_quantity=stock,
            min_stock_level=min_stock,
            **kwargs,
        )
        for branch in branch_list:
            product.branch_products.append(
                BranchProduct(
                    tenant_id=tenant.id,
                    branch_id=branch.id,
                    stock_quantity=stock,
                    min_stock_level=min_stock,
                )
            )
        db_session.add(product)
        db_session.commit()
        return product

    return factory


@pytest.fixture
def record_sale(db_session):
    """Factory recording a sale of a product at a branch."""
    counter = {"n": 0}

    def factory(product, branch, quantity=1):
        counter["n"] += 1
        sale = Sale(
            tenant_id=branch.tenant_id,
            branch_id=branch.id,
            sale_number=f"S-{counter['n']:05d}",
            total_amount=product.selling_price * quantity,
        )
        sale.items.append(
            SaleItem(product_id=product.id, quantity=quantity, unit_price=product.selling_price)
        )
        db_session.add(sale)
        db_session.commit()
        return sale

    return factory


# =============================================================================
# Authentication
# =============================================================================


def auth_headers_for(user, session_id=None):
    """Bearer headers for a user, with a session id claim."""
    token = sign_jwt({
        "sub": str(user.id),
        "tenant_id": user.tenant_id,
        "sid": session_id or f"session-{user.id}",
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers(owner):
    return auth_headers_for(owner)


@pytest.fixture
def manager_headers(manager):
    return auth_headers_for(manager)


@pytest.fixture
def staff_headers(staff):
    return auth_headers_for(staff)
