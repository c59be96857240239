"""
Domain enums shared by the checkout workflow, services and routers.
"""

from enum import Enum


class CustomerCategory(str, Enum):
    LOCAL_RESIDENT = "local-resident"
    BULK_CLUB = "bulk-club"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


# Forward-only lifecycle; index = position in the pipeline
ORDER_STATUS_SEQUENCE = (OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.COMPLETED)
