"""ORM mapping metadata."""

from .models import (
    Association,
    Cardinality,
    EntityMapping,
    FetchStrategy,
    MappingProvider,
    MappingSnapshot,
)

__all__ = [
    "Association",
    "Cardinality",
    "EntityMapping",
    "FetchStrategy",
    "MappingProvider",
    "MappingSnapshot",
]
