import pytest

from ironledger.core import Aggregate, IntegerField, KeyField, StringField
from ironledger.errors import InvalidStateError
from ironledger.mappers import Record
from ironledger.persistence import ChangeTracker, EntityState, IdentityMap, TrackingRecord


class Account(Aggregate):
    code = KeyField()
    owner = StringField()
    balance = IntegerField(default=0)


def make_tracker():
    return ChangeTracker(IdentityMap())


def load(tracker, key="A-1", owner="Alice", balance=100, version=1):
    record = tracker.identity_map.resolve(
        Account, key, lambda: Record(key=key, values={"owner": owner, "balance": balance}, version=version)
    )
    return record.entity


def test_loaded_entity_starts_clean_and_is_attached():
    tracker = make_tracker()
    account = load(tracker)
    assert tracker.state_of(account) is EntityState.CLEAN
    assert account._tracker is tracker


def test_field_assignment_moves_clean_to_dirty_and_back():
    tracker = make_tracker()
    account = load(tracker)

    account.balance = 50
    assert tracker.state_of(account) is EntityState.DIRTY

    account.balance = 100
    assert tracker.state_of(account) is EntityState.CLEAN


def test_same_value_assignment_stays_clean():
    tracker = make_tracker()
    account = load(tracker)
    account.owner = "Alice"
    assert tracker.state_of(account) is EntityState.CLEAN


def test_new_entity_absorbs_mutations():
    tracker = make_tracker()
    account = Account(code="N-1", owner="Nina")
    tracker.register_new(account)
    account.balance = 5
    tracker.register_dirty(account, "balance")
    assert tracker.state_of(account) is EntityState.NEW


def test_adding_tracked_entity_twice_raises():
    tracker = make_tracker()
    account = load(tracker)
    with pytest.raises(InvalidStateError):
        tracker.register_new(account)


def test_entity_tracked_elsewhere_cannot_be_added():
    account = load(make_tracker())
    with pytest.raises(InvalidStateError, match="another unit of work"):
        make_tracker().register_new(account)


def test_register_deleted_on_untracked_entity_raises():
    with pytest.raises(InvalidStateError):
        make_tracker().register_deleted(Account(code="X"))


def test_deleted_is_terminal():
    tracker = make_tracker()
    account = load(tracker)
    account.balance = 1
    tracker.register_deleted(account)
    assert tracker.state_of(account) is EntityState.DELETED

    with pytest.raises(InvalidStateError):
        tracker.register_deleted(account)
    with pytest.raises(InvalidStateError):
        account.owner = "Mallory"
    with pytest.raises(InvalidStateError):
        tracker.register_dirty(account, "owner")
    assert account.owner == "Alice"


def test_deleting_new_entity_cancels_insert():
    tracker = make_tracker()
    account = Account(code="N-2")
    tracker.register_new(account)
    assert tracker.register_deleted(account) is None
    assert tracker.state_of(account) is None
    assert account._tracker is None
    assert len(tracker.identity_map) == 0


def test_key_of_tracked_entity_is_immutable():
    tracker = make_tracker()
    account = load(tracker)
    with pytest.raises(InvalidStateError):
        account.code = "A-2"
    with pytest.raises(InvalidStateError):
        tracker.register_dirty(account, "code")
    assert account.key == "A-1"


def test_register_dirty_records_explicit_marks():
    tracker = make_tracker()
    account = load(tracker)
    record = tracker.register_dirty(account, "owner")
    assert record.state is EntityState.DIRTY
    assert record.changed_fields() == {"owner": "Alice"}

    tracker.detect_changes()
    assert record.state is EntityState.DIRTY


def test_register_dirty_with_unknown_field_marks_nothing():
    tracker = make_tracker()
    account = load(tracker)
    with pytest.raises(InvalidStateError):
        tracker.register_dirty(account, "owner", "nope")

    record = tracker.identity_map.record_for(account)
    assert record.state is EntityState.CLEAN
    assert record.marked_fields == set()
    assert not record.has_changes()


def test_forgotten_entity_can_be_registered_again():
    tracker = make_tracker()
    account = load(tracker)
    tracker.identity_map.forget(Account, "A-1")
    assert account._tracker is None

    tracker.register_new(account)
    assert tracker.state_of(account) is EntityState.NEW
    assert account._tracker is tracker


def test_partition_keeps_registration_order():
    tracker = make_tracker()
    first = load(tracker, key="A-1")
    second = load(tracker, key="A-2")
    created = Account(code="N-3")
    tracker.register_new(created)
    second.balance = 1
    first.balance = 2
    tracker.register_deleted(load(tracker, key="A-3"))

    inserts, updates, deletes = tracker.partition()

    assert [r.entity for r in inserts] == [created]
    assert [r.entity for r in updates] == [first, second]
    assert [r.key for r in deletes] == ["A-3"]


def test_revert_restores_snapshot_values():
    tracker = make_tracker()
    account = load(tracker)
    account.owner = "Bob"
    tracker.register_deleted(account)
    created = Account(code="N-4")
    tracker.register_new(created)

    tracker.revert_all()

    assert account.owner == "Alice"
    assert tracker.state_of(account) is EntityState.CLEAN
    assert tracker.state_of(created) is None


def test_mark_inserted_adopts_key_and_resets_snapshot():
    class Ticket(Aggregate):
        title = StringField()

    tracker = make_tracker()
    ticket = Ticket(title="first")
    record = tracker.register_new(ticket)

    tracker.mark_inserted(record, 7, 1)

    assert ticket.key == 7
    assert record.state is EntityState.CLEAN
    assert record.version == 1
    assert tracker.identity_map.get(Ticket, 7) is record
    assert record.snapshot == {"id": 7, "title": "first"}


def test_mark_updated_and_deleted():
    tracker = make_tracker()
    account = load(tracker)
    account.balance = 3
    record = tracker.identity_map.record_for(account)

    tracker.mark_updated(record, 2)
    assert record.state is EntityState.CLEAN
    assert record.version == 2
    assert not record.has_changes()

    tracker.register_deleted(account)
    tracker.mark_deleted(record)
    assert tracker.state_of(account) is None
    assert account._tracker is None


def test_tracking_record_refresh_replaces_values_and_version():
    record = TrackingRecord.loaded(Account, Record(key="A-9", values={"owner": "Old", "balance": 1}, version=1))
    record.refresh(Record(key="A-9", values={"owner": "New", "balance": 2}, version=4))
    assert record.entity.owner == "New"
    assert record.version == 4
    assert record.snapshot["balance"] == 2
    assert record.label == "Account#'A-9'"
