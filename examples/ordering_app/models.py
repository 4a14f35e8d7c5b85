"""
Aggregates for the IronLedger ordering example.
"""

from __future__ import annotations

from ironledger.core import Aggregate, BooleanField, FloatField, IntegerField, ReferenceField, StringField


class Customer(Aggregate):
    name = StringField(nullable=False, max_length=120)
    email = StringField(nullable=False, max_length=255)


class Order(Aggregate):
    customer_id = ReferenceField(Customer)
    status = StringField(default="open", choices=("open", "paid", "cancelled"))
    paid = BooleanField(default=False)


class OrderLine(Aggregate):
    order_id = ReferenceField(Order)
    sku = StringField(nullable=False, max_length=40)
    quantity = IntegerField(default=1)
    unit_price = FloatField(default=0.0)
