"""
Capital report: what the business is worth right now.

    stock          = sum(quantity * current price) over warehouses counted in total stock
    vat_on_stock   = stock * default_tax_percent / 100 - tax paid on delivered purchases
    pending        = total of purchases not yet delivered
    net_stock      = stock + vat_on_stock + pending
    net_capital    = net_stock + unpaid customer balances + non-debt account balances
    final_result   = net_capital + debt account balances

Month-end figures are kept in ``capital_snapshots`` so history survives later edits.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from crud import app_config as app_config_crud
from crud import partner_balances
from models.accounts import Account, AccountType
from models.capital_snapshots import CapitalSnapshot
from models.inventory import Inventory
from models.item_prices import ItemPrice
from models.items import Item
from models.purchases import Purchase, PurchaseStatus
from models.warehouses import Warehouse
from utils import to_decimal

logger = logging.getLogger("capital_report")

CENT = Decimal("0.01")


def _round(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def get_stock_value(db: Session, tenant_id: str) -> Decimal:
    rows = (
        db.query(Inventory.quantity, ItemPrice.price_usd)
        .join(Item, Inventory.item_id == Item.id)
        .join(Warehouse, Inventory.warehouse_id == Warehouse.id)
        .outerjoin(ItemPrice, ItemPrice.item_id == Inventory.item_id)
        .filter(
            Inventory.tenant_id == tenant_id,
            Inventory.quantity > 0,
            Warehouse.include_in_total_stock.is_(True),
            Item.deleted_at.is_(None),
            Warehouse.deleted_at.is_(None),
        )
        .all()
    )
    return sum((to_decimal(quantity) * to_decimal(price) for quantity, price in rows), Decimal("0"))


def _purchase_sum(db: Session, tenant_id: str, column, statuses) -> Decimal:
    return to_decimal(
        db.query(func.coalesce(func.sum(column), 0))
        .filter(
            Purchase.tenant_id == tenant_id,
            Purchase.status.in_(statuses),
            Purchase.deleted_at.is_(None),
        )
        .scalar()
    )


def _account_sum(db: Session, tenant_id: str, debt: bool) -> Decimal:
    query = db.query(func.coalesce(func.sum(Account.current_balance), 0)).filter(
        Account.tenant_id == tenant_id,
        Account.is_active.is_(True),
        Account.deleted_at.is_(None),
    )
    if debt:
        query = query.filter(Account.account_type == AccountType.DEBT)
    else:
        query = query.filter(Account.account_type != AccountType.DEBT, Account.include_in_total.is_(True))
    return to_decimal(query.scalar())


def get_capital_report(db: Session, tenant_id: str) -> dict:
    stock = get_stock_value(db, tenant_id)
    tax_percent = app_config_crud.get_decimal_config(db, tenant_id, "default_tax_percent", "11")
    purchase_tax = _purchase_sum(db, tenant_id, Purchase.tax_usd, [PurchaseStatus.DELIVERED])
    vat_on_stock = stock * tax_percent / Decimal("100") - purchase_tax
    pending = _purchase_sum(db, tenant_id, Purchase.total_usd, [PurchaseStatus.WAITING, PurchaseStatus.SHIPPED])
    net_stock = stock + vat_on_stock + pending

    unpaid = partner_balances.get_total_unpaid_customer_balance(db, tenant_id)
    accounts = _account_sum(db, tenant_id, debt=False)
    net_capital = net_stock + unpaid + accounts
    debt = _account_sum(db, tenant_id, debt=True)

    return {
        "stock": _round(stock),
        "vat_on_stock": _round(vat_on_stock),
        "pending_purchases": _round(pending),
        "net_stock": _round(net_stock),
        "unpaid_customers": _round(unpaid),
        "accounts_total": _round(accounts),
        "net_capital": _round(net_capital),
        "debt_accounts": _round(debt),
        "final_result": _round(net_capital + debt),
    }


def take_snapshot(db: Session, tenant_id: str, year: int, month: int) -> CapitalSnapshot:
    """Store the current capital figures as the given month's snapshot, replacing any earlier one."""
    report = get_capital_report(db, tenant_id)
    snapshot = db.query(CapitalSnapshot).filter(
        CapitalSnapshot.tenant_id == tenant_id,
        CapitalSnapshot.year == year,
        CapitalSnapshot.month == month,
    ).first()
    if snapshot is None:
        snapshot = CapitalSnapshot(tenant_id=tenant_id, year=year, month=month)
        db.add(snapshot)
    snapshot.net_capital = report["net_capital"]
    snapshot.final_result = report["final_result"]
    snapshot.payload = {key: str(value) for key, value in report.items()}
    db.flush()
    logger.info(f"Capital snapshot {month:02d}/{year} stored for tenant {tenant_id}: {report['final_result']}")
    return snapshot


def get_history(db: Session, tenant_id: str, year: Optional[int] = None) -> List[CapitalSnapshot]:
    query = db.query(CapitalSnapshot).filter(CapitalSnapshot.tenant_id == tenant_id)
    if year:
        query = query.filter(CapitalSnapshot.year == year)
    return query.order_by(CapitalSnapshot.year, CapitalSnapshot.month).all()


def get_tenant_ids(db: Session) -> List[str]:
    """Tenants with any warehouse or account; the scheduler snapshots each of them."""
    tenants = {row[0] for row in db.query(Warehouse.tenant_id).distinct()}
    tenants.update(row[0] for row in db.query(Account.tenant_id).distinct())
    return sorted(tenants)
