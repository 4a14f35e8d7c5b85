"""
Aggregate declaration: fields, metadata and the dependency graph.
"""

from .aggregate import Aggregate, AggregateConfigurationError, AggregateMeta, AggregateOptions
from .fields import (
    AutoField,
    BooleanField,
    Field,
    FloatField,
    IntegerField,
    KeyField,
    ReferenceField,
    StringField,
)
from .relations import DependencyGraph, RelationRegistry, relation_registry

__all__ = [
    "Aggregate",
    "AggregateConfigurationError",
    "AggregateMeta",
    "AggregateOptions",
    "AutoField",
    "BooleanField",
    "DependencyGraph",
    "Field",
    "FloatField",
    "IntegerField",
    "KeyField",
    "ReferenceField",
    "RelationRegistry",
    "StringField",
    "relation_registry",
]
