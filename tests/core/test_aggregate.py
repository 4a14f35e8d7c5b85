import pytest

from ironledger.core import (
    Aggregate,
    AggregateConfigurationError,
    BooleanField,
    FloatField,
    IntegerField,
    KeyField,
    ReferenceField,
    StringField,
)


class Member(Aggregate):
    name = StringField(max_length=20, nullable=False)
    age = IntegerField(default=0)
    rating = FloatField(default=1.0)
    is_active = BooleanField(default=True)


class Badge(Aggregate):
    holder = ReferenceField(Member)
    title = StringField()


def test_metadata_collects_fields_in_order():
    assert list(Member._meta.fields) == ["id", "name", "age", "rating", "is_active"]
    assert Member._meta.key_field.name == "id"
    assert Member._meta.name == "member"
    assert [f.name for f in Member._meta.value_fields()] == ["name", "age", "rating", "is_active"]


def test_defaults_and_key():
    member = Member(name="Alice")
    assert member.age == 0
    assert member.is_active is True
    assert member.key is None
    assert member.to_dict() == {"id": None, "name": "Alice", "age": 0, "rating": 1.0, "is_active": True}


def test_unknown_constructor_argument_is_rejected():
    with pytest.raises(TypeError, match="nickname"):
        Member(name="Alice", nickname="Al")


def test_field_conversion_and_validation():
    member = Member(name="Bob", age="41", is_active="false")
    assert member.age == 41
    assert member.is_active is False
    with pytest.raises(ValueError):
        member.name = None
    with pytest.raises(ValueError):
        member.name = "x" * 21
    with pytest.raises(ValueError):
        member.age = True


def test_choices_and_validators():
    def positive(value):
        if value <= 0:
            raise ValueError("must be positive")

    class Ticket(Aggregate):
        status = StringField(choices=("open", "closed"), default="open")
        seats = IntegerField(default=1, validators=[positive])

    ticket = Ticket()
    with pytest.raises(ValueError):
        ticket.status = "lost"
    with pytest.raises(ValueError):
        ticket.seats = 0


def test_explicit_key_field_replaces_auto_key():
    class Country(Aggregate):
        code = KeyField()
        label = StringField()

        class Meta:
            name = "countries"

    assert list(Country._meta.fields) == ["code", "label"]
    assert Country._meta.name == "countries"
    assert Country(code="NO").key == "NO"


def test_plain_id_field_without_key_is_rejected():
    with pytest.raises(AggregateConfigurationError):

        class Broken(Aggregate):
            id = StringField()


def test_abstract_base_fields_are_inherited():
    class Timestamped(Aggregate):
        created = IntegerField(default=0)

        class Meta:
            abstract = True

    class Event(Timestamped):
        title = StringField()

    assert list(Event._meta.fields) == ["id", "created", "title"]
    assert Event._meta.get_field("created") is not Timestamped._meta.get_field("created")
    assert Timestamped._meta.key_field is None


def test_from_storage_skips_validation_and_ignores_unknown_columns():
    member = Member.from_storage(7, {"name": None, "age": 3, "legacy": "x"})
    assert member.key == 7
    assert member.name is None
    assert member.age == 3


def test_diff_reports_changed_storage_values():
    member = Member.from_storage(1, {"name": "Alice", "age": 30, "rating": 1.0, "is_active": True})
    snapshot = member.snapshot_values()
    member.age = 31
    assert member.diff(snapshot) == {"age": 31}


def test_reference_field_keeps_new_entity_until_it_has_a_key():
    member = Member(name="Alice")
    badge = Badge(holder=member, title="Gold")
    assert badge.to_dict()["holder"] is None
    assert badge.snapshot_values()["holder"] is member

    member._assign_key(12)
    assert badge.to_dict()["holder"] == 12

    assert Badge(holder=Member(id=3, name="Carol")).holder == 3
    with pytest.raises(ValueError):
        Badge(holder=Badge(title="wrong"))
