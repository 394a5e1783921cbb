from pharmastock.models.medicine import Medicine
from pharmastock.models.inventory import InventoryLot
from pharmastock.models.adjustment import StockAdjustment
from pharmastock.models.sales import Sale, SaleItem
from pharmastock.models.purchase_order import PurchaseOrder, PurchaseOrderItem
