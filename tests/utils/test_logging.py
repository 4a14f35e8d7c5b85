import logging

import pytest

from ironledger.utils import resolve_slow_call_ms
from ironledger.utils.logging import (
    CorrelationIdFilter,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    time_call,
)
from ironledger.utils.naming import camel_to_snake, entity_label


def test_correlation_id_round_trip():
    token = set_correlation_id("test-token")
    assert token == "test-token"
    assert get_correlation_id() == "test-token"


def test_filter_injects_correlation_id():
    set_correlation_id("abc")
    record = logging.LogRecord("ironledger.x", logging.INFO, __file__, 1, "msg", None, None)
    assert CorrelationIdFilter().filter(record)
    assert record.correlation_id == "abc"


def test_loggers_live_under_package_namespace():
    assert get_logger("persistence.test").name == "ironledger.persistence.test"
    assert logging.getLogger("ironledger").handlers


def test_time_call_logs_duration(caplog):
    logger = get_logger("tests.logging")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with time_call("unit-test", logger, threshold_ms=10_000, extra={"scope": "s1"}):
        pass
    records = [record for record in caplog.records if record.name == logger.name]
    assert records[-1].levelno == logging.DEBUG
    assert "unit-test took" in records[-1].getMessage()
    assert records[-1].scope == "s1"


def test_time_call_warns_above_threshold(caplog):
    logger = get_logger("tests.slow")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with time_call("slow-call", logger, threshold_ms=0):
        pass
    assert caplog.records[-1].levelno == logging.WARNING


def test_commit_is_logged(caplog):
    from ironledger.core import Aggregate, StringField
    from ironledger.mappers import InMemoryDataMapper, InMemoryStore
    from ironledger.persistence import TransactionManager, UnitOfWork

    class Memo(Aggregate):
        text = StringField()

    store = InMemoryStore()
    caplog.set_level(logging.INFO, logger="ironledger.persistence.unit_of_work")
    uow = UnitOfWork(TransactionManager(store), {Memo: InMemoryDataMapper(Memo, store)})
    uow.repository(Memo).add(Memo(text="hello"))
    uow.commit()

    messages = [r.getMessage() for r in caplog.records if r.name == "ironledger.persistence.unit_of_work"]
    assert any("1 insert(s), 0 update(s), 0 delete(s)" in m for m in messages)
    assert any(m.endswith("committed") for m in messages)


def test_slow_call_threshold_resolution(monkeypatch):
    monkeypatch.delenv("IRONLEDGER_SLOW_CALL_MS", raising=False)
    assert resolve_slow_call_ms(default=100) == 100
    monkeypatch.setenv("IRONLEDGER_SLOW_CALL_MS", "250")
    assert resolve_slow_call_ms(default=100) == 250
    assert resolve_slow_call_ms(default=100, override=5) == 5
    monkeypatch.setenv("IRONLEDGER_SLOW_CALL_MS", "fast")
    with pytest.raises(ValueError):
        resolve_slow_call_ms(default=100)
    with pytest.raises(ValueError):
        resolve_slow_call_ms(default=100, override=-1)


def test_naming_helpers():
    assert camel_to_snake("OrderLine") == "order_line"
    assert camel_to_snake("HTTPRequestLog") == "http_request_log"
    assert entity_label(int, None) == "int#<new>"
    assert entity_label(int, 4) == "int#4"
