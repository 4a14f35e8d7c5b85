"""
Field descriptors for IronLedger aggregates.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Sequence, Type, cast

if TYPE_CHECKING:
    from .aggregate import Aggregate


class FieldError(Exception):
    """Internal exception for field configuration issues."""


class Field:
    """
    Base class for aggregate field descriptors.

    Fields own the per-instance value storage and tell the owning change
    tracker about every assignment, so the tracker can reject mutations that
    the entity's state forbids before the value is written.
    """

    _creation_counter = 0

    def __init__(
        self,
        *,
        key: bool = False,
        nullable: bool = True,
        default: Any = None,
        choices: Optional[Sequence[Any]] = None,
        validators: Optional[Iterable[Callable[[Any], None]]] = None,
        help_text: Optional[str] = None,
    ) -> None:
        self.key = key
        self.nullable = nullable
        self.default = default
        self.choices = tuple(choices) if choices is not None else None
        self.validators = list(validators or [])
        self.help_text = help_text

        self.aggregate: Type["Aggregate"] | None = None
        self.name: str | None = None
        self.creation_counter = Field._creation_counter
        Field._creation_counter += 1

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        entity = cast("Aggregate", instance)
        return entity._field_values.get(self.require_name())

    def __set__(self, instance: object, value: Any) -> None:
        entity = cast("Aggregate", instance)
        python_value = self.clean(value)
        entity._before_field_change(self)
        entity._field_values[self.require_name()] = python_value
        entity._after_field_change(self)

    # Metadata helpers ----------------------------------------------------
    def contribute_to_class(self, aggregate: Type["Aggregate"], name: str) -> None:
        self.aggregate = aggregate
        self.name = name
        setattr(aggregate, name, self)

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name

    # Conversion / validation ---------------------------------------------
    def get_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)

    def clean(self, value: Any) -> Any:
        name = self.require_name()
        if value is None:
            if not self.nullable and not self.key:
                raise ValueError(f"Field '{name}' cannot be None")
            return None
        if self.choices and value not in self.choices:
            raise ValueError(f"Value '{value}' for field '{name}' not in choices {self.choices}")
        python_value = self.to_python(value)
        for validator in self.validators:
            validator(python_value)
        return python_value

    def to_python(self, value: Any) -> Any:
        return value

    def to_storage(self, value: Any) -> Any:
        """Value handed to data mappers and compared during dirty checking."""
        return value

    def snapshot(self, value: Any) -> Any:
        return copy.deepcopy(self.to_storage(value))


class KeyField(Field):
    """
    Identity field. The value is supplied by the application or adopted from
    storage after the first successful insert.
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs["key"] = True
        kwargs.setdefault("nullable", True)
        super().__init__(**kwargs)


class AutoField(KeyField):
    """
    Integer key added to aggregates that do not declare one.
    """

    def to_python(self, value: Any) -> int | None:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value '{value}' for AutoField") from exc


class IntegerField(Field):
    def to_python(self, value: Any) -> int | None:
        if isinstance(value, bool):
            raise ValueError(f"Invalid integer value '{value}'")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}'") from exc


class FloatField(Field):
    def to_python(self, value: Any) -> float | None:
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid float value '{value}'") from exc


class BooleanField(Field):
    def __init__(self, *, default: Any = False, **kwargs: Any) -> None:
        kwargs.setdefault("nullable", False)
        super().__init__(default=default, **kwargs)

    def to_python(self, value: Any) -> bool | None:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in {"true", "t", "1"}:
                return True
            if lowered in {"false", "f", "0"}:
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        raise ValueError(f"Invalid boolean value '{value}'")


class StringField(Field):
    def __init__(self, *, max_length: int = 255, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.max_length = max_length

    def to_python(self, value: Any) -> str | None:
        result = str(value)
        if self.max_length and len(result) > self.max_length:
            raise ValueError(
                f"Value for field '{self.require_name()}' exceeds max_length {self.max_length}"
            )
        return result


class ReferenceField(Field):
    """
    Holds the key of another aggregate.

    An entity may be assigned instead of a key; it is kept until storage gives
    it a key, which lets a new child reference a parent inserted in the same
    commit. Declaring the field records the dependency used to order inserts
    and deletes.
    """

    def __init__(self, to: Type["Aggregate"] | str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.to = to
        self.remote_aggregate: Type["Aggregate"] | None = to if isinstance(to, type) else None

    def contribute_to_class(self, aggregate: Type["Aggregate"], name: str) -> None:
        super().contribute_to_class(aggregate, name)
        from .relations import relation_registry

        relation_registry.register_reference(aggregate, self)

    def resolve_aggregate(self, aggregate: Type["Aggregate"]) -> None:
        self.remote_aggregate = aggregate

    def to_python(self, value: Any) -> Any:
        from .aggregate import Aggregate

        if isinstance(value, Aggregate):
            if self.remote_aggregate is not None and not isinstance(value, self.remote_aggregate):
                raise ValueError(
                    f"Field '{self.require_name()}' expects {self.remote_aggregate.__name__}, "
                    f"received {value.__class__.__name__}"
                )
            return value if value.key is None else value.key
        return value

    def to_storage(self, value: Any) -> Any:
        from .aggregate import Aggregate

        if isinstance(value, Aggregate):
            return value.key
        return value

    def snapshot(self, value: Any) -> Any:
        from .aggregate import Aggregate

        if isinstance(value, Aggregate) and value.key is None:
            return value
        return self.to_storage(value)
