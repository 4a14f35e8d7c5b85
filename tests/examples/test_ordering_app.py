import pytest

from examples.ordering_app import (
    Customer,
    Order,
    OrderLine,
    bootstrap_adapter,
    open_unit_of_work,
    place_order,
    rename_customer,
    run_demo,
)
from ironledger.errors import ConflictError


def test_place_order_and_rename(tmp_path):
    adapter = bootstrap_adapter(dsn=f"sqlite:///{tmp_path / 'orders.db'}")
    try:
        ids = place_order(adapter, ("Bob", "bob@example.com"), [("MUG-1", 1, 7.5)])
        rename_customer(adapter, ids["customer_id"], "Robert")

        with open_unit_of_work(adapter) as uow:
            customer = uow.repository(Customer).get(ids["customer_id"])
            order = uow.repository(Order).get(ids["order_id"])
            lines = uow.repository(OrderLine).query({"order_id": order.key})
            assert customer.name == "Robert"
            assert uow.version_of(customer) == 2
            assert order.customer_id == customer.key
            assert [line.sku for line in lines] == ["MUG-1"]
    finally:
        adapter.close()


def test_stale_write_is_rejected(tmp_path):
    adapter = bootstrap_adapter(dsn=f"sqlite:///{tmp_path / 'stale.db'}")
    try:
        ids = place_order(adapter, ("Eve", "eve@example.com"), [])
        uow = open_unit_of_work(adapter)
        customer = uow.repository(Customer).get(ids["customer_id"])
        rename_customer(adapter, ids["customer_id"], "Evelyn")
        customer.email = "eve@elsewhere.com"
        with pytest.raises(ConflictError):
            uow.commit()
    finally:
        adapter.close()


def test_run_demo_returns_summary():
    summary = run_demo()
    assert summary["customer"] == "Alicia"
    assert summary["lines"] == [("BOOK-1", 2), ("PEN-7", 10)]
    assert summary["total"] == 34.9
