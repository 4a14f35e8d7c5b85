"""
Ordering sample application showcasing IronLedger units of work.
"""

from .demo import bootstrap_adapter, open_unit_of_work, place_order, rename_customer, run_demo
from .models import Customer, Order, OrderLine

__all__ = [
    "Customer",
    "Order",
    "OrderLine",
    "bootstrap_adapter",
    "open_unit_of_work",
    "place_order",
    "rename_customer",
    "run_demo",
]
