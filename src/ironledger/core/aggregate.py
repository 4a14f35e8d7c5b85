"""
Aggregate base class and metadata orchestration for IronLedger.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from ..utils import camel_to_snake
from .fields import AutoField, Field, ReferenceField
from .relations import relation_registry

if TYPE_CHECKING:
    from ..persistence.tracking import ChangeTracker


class AggregateConfigurationError(Exception):
    """Raised when an aggregate class is misconfigured."""


@dataclass
class AggregateOptions:
    """
    Container for aggregate metadata calculated by :class:`AggregateMeta`.
    """

    aggregate: Type["Aggregate"]
    name: str = ""
    abstract: bool = False
    fields: "OrderedDict[str, Field]" = field(default_factory=OrderedDict)
    key_field: Optional[Field] = None

    def add_field(self, field_obj: Field) -> None:
        if field_obj.name in self.fields:
            raise AggregateConfigurationError(
                f"Duplicate field name '{field_obj.name}' on aggregate '{self.aggregate.__name__}'"
            )
        self.fields[field_obj.name] = field_obj
        if field_obj.key:
            if self.key_field and self.key_field is not field_obj:
                raise AggregateConfigurationError(
                    f"Multiple key fields defined on aggregate '{self.aggregate.__name__}'"
                )
            self.key_field = field_obj

    def get_field(self, name: str) -> Field:
        try:
            return self.fields[name]
        except KeyError as exc:
            raise KeyError(f"Unknown field '{name}' on aggregate '{self.aggregate.__name__}'") from exc

    def get_fields(self) -> Iterable[Field]:
        return self.fields.values()

    def value_fields(self) -> Iterable[Field]:
        """Every field except the key."""
        return [f for f in self.fields.values() if not f.key]


TAggregate = TypeVar("TAggregate", bound="Aggregate")


class AggregateMeta(type):
    """
    Metaclass collecting field descriptors into ``_meta``.
    """

    def __new__(mcls, name: str, bases: tuple[type, ...], attrs: Dict[str, Any]) -> "AggregateMeta":
        if name == "Aggregate" and bases == (object,):
            return super().__new__(mcls, name, bases, attrs)

        declared_fields: Dict[str, Field] = {}
        for attr_name, value in list(attrs.items()):
            if isinstance(value, Field):
                declared_fields[attr_name] = attrs.pop(attr_name)

        cls = super().__new__(mcls, name, bases, attrs)

        meta = attrs.get("Meta")
        cls._meta = AggregateOptions(
            aggregate=cls,
            name=getattr(meta, "name", camel_to_snake(name)) if meta else camel_to_snake(name),
            abstract=getattr(meta, "abstract", False) if meta else False,
        )

        inherited = [
            (field_name, field_obj)
            for base in reversed(cls.__mro__[1:])
            if isinstance(base, AggregateMeta) and hasattr(base, "_meta") and base._meta.abstract
            for field_name, field_obj in base._meta.fields.items()
        ]
        for attr_name, field_obj in inherited:
            if attr_name in declared_fields:
                continue
            declared_fields[attr_name] = field_obj

        for attr_name, field_obj in sorted(declared_fields.items(), key=lambda item: item[1].creation_counter):
            if field_obj.aggregate is not None and field_obj.aggregate is not cls:
                field_obj = _copy_field(field_obj)
            field_obj.contribute_to_class(cls, attr_name)
            cls._meta.add_field(field_obj)

        if cls._meta.key_field is None and not cls._meta.abstract:
            if "id" in cls._meta.fields:
                raise AggregateConfigurationError(
                    f"Aggregate '{cls.__name__}' defines a field named 'id' but no key field. "
                    "Declare it as KeyField() or choose a different name."
                )
            auto_field = AutoField()
            auto_field.contribute_to_class(cls, "id")
            cls._meta.add_field(auto_field)
            cls._meta.fields.move_to_end("id", last=False)

        relation_registry.register_aggregate(cls)
        return cls


def _copy_field(field_obj: Field) -> Field:
    clone = object.__new__(field_obj.__class__)
    clone.__dict__.update(field_obj.__dict__)
    clone.validators = list(field_obj.validators)
    clone.aggregate = None
    return clone


class Aggregate(metaclass=AggregateMeta):
    """
    Base class for domain objects tracked by a unit of work.

    Values live in ``_field_values``; ``_tracker`` points at the change
    tracker of the scope currently tracking the entity, if any.
    """

    _meta: AggregateOptions

    def __init__(self, **kwargs: Any) -> None:
        self._field_values: Dict[str, Any] = {}
        self._tracker: Optional["ChangeTracker"] = None

        unknown = set(kwargs) - set(self._meta.fields)
        if unknown:
            raise TypeError(
                f"{self.__class__.__name__} got unexpected field(s): {', '.join(sorted(unknown))}"
            )

        for field_obj in self._meta.get_fields():
            if field_obj.name in kwargs:
                setattr(self, field_obj.name, kwargs[field_obj.name])
            else:
                self._field_values[field_obj.name] = field_obj.get_default()

    def __repr__(self) -> str:
        field_parts = ", ".join(
            f"{name}={value!r}" for name, value in self._field_values.items()
        )
        return f"<{self.__class__.__name__} {field_parts}>"

    @classmethod
    def from_storage(cls: Type[TAggregate], key: Any, values: Mapping[str, Any]) -> TAggregate:
        """
        Build an instance from a storage row without running field
        validation. Unknown columns are ignored.
        """
        instance = cls.__new__(cls)
        instance._field_values = {}
        instance._tracker = None
        for field_obj in cls._meta.get_fields():
            instance._field_values[field_obj.name] = values.get(field_obj.name)
        key_field = cls._meta.key_field
        if key_field is not None:
            instance._field_values[key_field.name] = key
        return instance

    @property
    def key(self) -> Any:
        key_field = self._meta.key_field
        if key_field is None:
            raise AggregateConfigurationError(
                f"Aggregate '{self.__class__.__name__}' does not define a key field."
            )
        return self._field_values.get(key_field.name)

    def to_dict(self) -> Dict[str, Any]:
        """Storage form of every field, references resolved to keys."""
        return {f.name: f.to_storage(self._field_values.get(f.name)) for f in self._meta.get_fields()}

    # Change tracking support -------------------------------------------
    def snapshot_values(self) -> Dict[str, Any]:
        return {f.name: f.snapshot(self._field_values.get(f.name)) for f in self._meta.get_fields()}

    def diff(self, snapshot: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Non-key fields whose current storage value differs from ``snapshot``.
        """
        changes: Dict[str, Any] = {}
        for field_obj in self._meta.value_fields():
            current = field_obj.snapshot(self._field_values.get(field_obj.name))
            if current != snapshot.get(field_obj.name):
                changes[field_obj.name] = field_obj.to_storage(self._field_values.get(field_obj.name))
        return changes

    def apply_values(self, values: Mapping[str, Any]) -> None:
        """
        Overwrite field values without notifying the tracker. Used when
        restoring a snapshot or refreshing from storage.
        """
        for name, value in values.items():
            if name in self._meta.fields:
                self._field_values[name] = value

    def held_references(self) -> List[Tuple[ReferenceField, Any]]:
        """``(field, value)`` for every reference field that is set."""
        return [
            (f, self._field_values[f.name])
            for f in self._meta.get_fields()
            if isinstance(f, ReferenceField) and self._field_values.get(f.name) is not None
        ]

    def resolve_references(self) -> None:
        """Replace referenced entities that now have a key with that key."""
        for field_obj, value in self.held_references():
            if isinstance(value, Aggregate) and value.key is not None:
                self._field_values[field_obj.require_name()] = value.key

    def _assign_key(self, value: Any) -> None:
        key_field = self._meta.key_field
        if key_field is not None:
            self._field_values[key_field.name] = value

    def _before_field_change(self, field_obj: Field) -> None:
        if self._tracker is not None:
            self._tracker.before_mutation(self, field_obj)

    def _after_field_change(self, field_obj: Field) -> None:
        if self._tracker is not None:
            self._tracker.after_mutation(self, field_obj)

    @classmethod
    def register_hook(cls, event: str, handler) -> None:
        from ..hooks import hooks

        hooks.register(event, handler, aggregate=cls)
