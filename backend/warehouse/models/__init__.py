from .company import Company
from .catalog import Product
from .inventory import InventoryLot
from .requests import CheckInRequest, CheckOutRequest
from .shipments import Shipment, ShipmentItem
from .reconciliation import ReconciliationReport
from .documents import DocumentSequence, ActivityEvent

__all__ = [
    'Company',
    'Product',
    'InventoryLot',
    'CheckInRequest', 'CheckOutRequest',
    'Shipment', 'ShipmentItem',
    'ReconciliationReport',
    'DocumentSequence', 'ActivityEvent',
]
