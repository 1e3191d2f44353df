"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import Generator
from datetime import date
from decimal import Decimal

# Must be set before the application modules create their engine and log file
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="backoffice-logs-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from database import Base, SessionLocal, engine
from main import app
from crud import items as items_crud
from models.accounts import Account, AccountType
from models.business_partners import BusinessPartner
from models.items import CostCalculation
from models.warehouses import Warehouse
from utils.auth_utils import get_current_user

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
USER = "tester@example.com"


@pytest.fixture(autouse=True)
def tables() -> Generator[None, None, None]:
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Session bound to the in-memory database; rolled back after the test."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Test client authenticated as USER and scoped to TENANT."""
    app.dependency_overrides[get_current_user] = lambda: {"email": USER}
    c = TestClient(app)
    c.headers.update({"X-Tenant-ID": TENANT})
    yield c
    app.dependency_overrides.clear()


@pytest.fixture
def warehouse(db) -> Warehouse:
    return make_warehouse(db, "WH1", "Main warehouse")


@pytest.fixture
def second_warehouse(db) -> Warehouse:
    return make_warehouse(db, "WH2", "Shop")


@pytest.fixture
def supplier(db) -> BusinessPartner:
    return make_partner(db, "SUP1", "Acme Supplies", is_supplier=True, is_customer=False)


@pytest.fixture
def customer(db) -> BusinessPartner:
    return make_partner(db, "CUS1", "Jane's Store", is_supplier=False, is_customer=True)


@pytest.fixture
def item(db):
    """Weighted-average item without a starting price."""
    return make_item(db, "ITM1", "Widget")


@pytest.fixture
def account(db) -> Account:
    cash = Account(tenant_id=TENANT, name="Cash box", account_type=AccountType.CASH, current_balance=Decimal("0"))
    db.add(cash)
    db.flush()
    return cash


def make_warehouse(db: Session, code: str, name: str, tenant_id: str = TENANT, **kwargs) -> Warehouse:
    warehouse = Warehouse(tenant_id=tenant_id, code=code, name=name, created_by=USER, **kwargs)
    db.add(warehouse)
    db.flush()
    return warehouse


def make_partner(db: Session, code: str, name: str, tenant_id: str = TENANT, **kwargs) -> BusinessPartner:
    partner = BusinessPartner(tenant_id=tenant_id, code=code, name=name, created_by=USER, **kwargs)
    db.add(partner)
    db.flush()
    return partner


def make_item(db: Session, code: str, name: str, tenant_id: str = TENANT,
              cost_calculation: CostCalculation = CostCalculation.WEIGHTED_AVERAGE, starting_price="0", **kwargs):
    data = {"code": code, "name": name, "cost_calculation": cost_calculation,
            "starting_price": Decimal(starting_price), **kwargs}
    return items_crud.create_item(db, tenant_id, data, USER)


def purchase_data(supplier_id: int, warehouse_id: int, status=None, **kwargs) -> dict:
    data = {"supplier_id": supplier_id, "warehouse_id": warehouse_id, "date": date(2024, 3, 1), **kwargs}
    if status is not None:
        data["status"] = status
    return data
