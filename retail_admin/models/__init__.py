# Models package
from retail_admin.models.warehouse import Branch, Warehouse
from retail_admin.models.record import Record
from retail_admin.models.party import Customer, Supplier
from retail_admin.models.product import Product
from retail_admin.models.inventory import Inventory, ProductVariant, VariantType
from retail_admin.models.order import Order, OrderItem, OrderStatus, DeliveryType, STATUS_LABELS
from retail_admin.models.invoice import Sale, SaleItem, PurchaseInvoice, PurchaseInvoiceItem, InvoiceType
