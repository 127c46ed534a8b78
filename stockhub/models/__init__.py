from stockhub.models.stock_item import FinishedGood, RawMaterial, StockKind
from stockhub.models.bom import BillOfMaterials, BomItem
from stockhub.models.transfer_order import TransferOrder, TransferOrderItem, TransferResult
from stockhub.models.sales_order import SalesOrder, SalesOrderItem
from stockhub.models.external_sync import ExternalItem, ExternalLocation
from stockhub.models.notification import Notification
from stockhub.models.audit_log import AuditLog
