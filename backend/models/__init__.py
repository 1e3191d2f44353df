from models.app_config import AppConfig
from models.code_counters import CodeCounter
from models.audit_log import AuditLog
from models.warehouses import Warehouse
from models.items import Item, CostCalculation
from models.inventory import Inventory
from models.inventory_movements import InventoryMovement
from models.item_prices import ItemPrice, ItemPriceHistory, PriceSourceType
from models.business_partners import BusinessPartner, PartnerStatus
from models.supplier_item_prices import SupplierItemPrice
from models.purchases import Purchase, PurchaseStatus
from models.purchase_items import PurchaseItem
from models.purchase_returns import PurchaseReturn, PurchaseReturnItem
from models.price_lists import PriceList, PriceListItem
from models.sales import Sale, SaleStatus
from models.sale_items import SaleItem
from models.customer_returns import CustomerReturn, CustomerReturnItem
from models.accounts import Account, AccountType
from models.account_movements import AccountAdjust, AccountAdjustType, AccountTransfer, IncomeCategory, IncomeTransaction
from models.supplier_payments import SupplierPayment
from models.customer_payments import CustomerPayment
from models.credit_debit_notes import CreditDebitNote, NoteType, PartnerRole
from models.expenses import ExpenseCategory, ExpenseTransaction
from models.employees import Employee, Salary
from models.item_adjusts import ItemAdjust, ItemAdjustItem, AdjustType
from models.item_transfers import ItemTransfer, ItemTransferItem
from models.capital_snapshots import CapitalSnapshot

__all__ = [
    'Account', 'AccountAdjust', 'AccountAdjustType', 'AccountTransfer', 'AccountType', 'AdjustType', 'AppConfig',
    'AuditLog', 'BusinessPartner', 'CapitalSnapshot', 'CodeCounter', 'CostCalculation', 'CreditDebitNote',
    'CustomerPayment', 'CustomerReturn', 'CustomerReturnItem', 'Employee', 'ExpenseCategory', 'ExpenseTransaction',
    'IncomeCategory', 'IncomeTransaction', 'Inventory', 'InventoryMovement', 'Item', 'ItemAdjust', 'ItemAdjustItem',
    'ItemPrice', 'ItemPriceHistory', 'ItemTransfer', 'ItemTransferItem', 'NoteType', 'PartnerRole', 'PartnerStatus',
    'PriceList', 'PriceListItem', 'PriceSourceType', 'Purchase', 'PurchaseItem', 'PurchaseReturn',
    'PurchaseReturnItem', 'PurchaseStatus', 'Salary', 'Sale', 'SaleItem', 'SaleStatus', 'SupplierItemPrice',
    'SupplierPayment', 'Warehouse',
]
