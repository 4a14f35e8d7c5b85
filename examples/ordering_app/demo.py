"""
End-to-end walk through: place an order, rename a customer, cancel a line.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

from ironledger.adapters import ConnectionConfig, SQLiteAdapter
from ironledger.mappers import SQLDataMapper
from ironledger.persistence import TransactionManager, UnitOfWork

from .models import Customer, Order, OrderLine

SCHEMA = (
    'CREATE TABLE IF NOT EXISTS "customer" ('
    '"id" INTEGER PRIMARY KEY AUTOINCREMENT, "name" TEXT NOT NULL, "email" TEXT NOT NULL, '
    '"version" INTEGER NOT NULL)',
    'CREATE TABLE IF NOT EXISTS "order" ('
    '"id" INTEGER PRIMARY KEY AUTOINCREMENT, '
    '"customer_id" INTEGER NOT NULL REFERENCES "customer" ("id"), '
    '"status" TEXT, "paid" BOOLEAN, "version" INTEGER NOT NULL)',
    'CREATE TABLE IF NOT EXISTS "order_line" ('
    '"id" INTEGER PRIMARY KEY AUTOINCREMENT, '
    '"order_id" INTEGER NOT NULL REFERENCES "order" ("id"), '
    '"sku" TEXT NOT NULL, "quantity" INTEGER, "unit_price" REAL, "version" INTEGER NOT NULL)',
)


def bootstrap_adapter(dsn: str = "sqlite:///:memory:") -> SQLiteAdapter:
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig.from_dsn(dsn))
    for statement in SCHEMA:
        adapter.execute(statement)
    return adapter


def open_unit_of_work(adapter: SQLiteAdapter) -> UnitOfWork:
    mappers = {
        aggregate: SQLDataMapper(aggregate, adapter)
        for aggregate in (Customer, Order, OrderLine)
    }
    return UnitOfWork(TransactionManager(adapter), mappers)


def place_order(
    adapter: SQLiteAdapter,
    customer: Tuple[str, str],
    lines: Sequence[Tuple[str, int, float]],
) -> Dict[str, Any]:
    """
    Insert a customer, an order and its lines in one commit. The lines are
    added before their parents; the dependency graph puts parents first.
    """
    with open_unit_of_work(adapter) as uow:
        new_customer = Customer(name=customer[0], email=customer[1])
        order = Order(customer_id=new_customer)
        for sku, quantity, unit_price in lines:
            uow.repository(OrderLine).add(
                OrderLine(order_id=order, sku=sku, quantity=quantity, unit_price=unit_price)
            )
        uow.repository(Order).add(order)
        uow.repository(Customer).add(new_customer)
    return {"customer_id": new_customer.key, "order_id": order.key}


def rename_customer(adapter: SQLiteAdapter, customer_id: int, name: str) -> None:
    with open_unit_of_work(adapter) as uow:
        uow.repository(Customer).get(customer_id).name = name


def order_summary(adapter: SQLiteAdapter, order_id: int) -> Dict[str, Any]:
    with open_unit_of_work(adapter) as uow:
        order = uow.repository(Order).get(order_id)
        customer = uow.repository(Customer).get(order.customer_id)
        lines: List[OrderLine] = uow.repository(OrderLine).query({"order_id": order_id})
        return {
            "customer": customer.name,
            "status": order.status,
            "lines": [(line.sku, line.quantity) for line in lines],
            "total": round(sum(line.quantity * line.unit_price for line in lines), 2),
        }


def run_demo() -> Dict[str, Any]:
    adapter = bootstrap_adapter()
    try:
        ids = place_order(
            adapter,
            ("Alice", "alice@example.com"),
            [("BOOK-1", 2, 12.5), ("PEN-7", 10, 0.99)],
        )
        rename_customer(adapter, ids["customer_id"], "Alicia")
        return order_summary(adapter, ids["order_id"])
    finally:
        adapter.close()
