"""Read-only ORM mapping metadata consumed by the detectors.

A ``MappingSnapshot`` is supplied whole for one analysis run. It is either
built from entity definitions directly or bound to a ``MappingProvider``
whose entities are loaded on first access, bounded by a timeout. Provider
failures surface as ``MetadataUnavailableError`` so a detector boundary can
contain them.
"""

from __future__ import annotations

import concurrent.futures
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from ..exceptions import MetadataUnavailableError
from ..logging_config import get_logger

logger = get_logger(__name__)


class Cardinality(Enum):
    TO_ONE = "to-one"
    TO_MANY = "to-many"


class FetchStrategy(Enum):
    LAZY = "lazy"
    EAGER = "eager"
    EXTRA_LAZY = "extra-lazy"


@dataclass(frozen=True)
class Association:
    """A declared relationship from one entity to another.

    ``join_columns`` lists the foreign-key columns held by the owning side;
    it is empty for inverse and to-many sides. ``nullable`` is None when the
    mapping does not say.
    """

    field_name: str
    cardinality: Cardinality
    target_entity: str
    nullable: Optional[bool] = None
    fetch_strategy: FetchStrategy = FetchStrategy.LAZY
    join_columns: tuple[str, ...] = ()

    @property
    def is_collection(self) -> bool:
        return self.cardinality is Cardinality.TO_MANY

    @property
    def has_foreign_key(self) -> bool:
        return bool(self.join_columns)


@dataclass(frozen=True)
class EntityMapping:
    """Mapping of one entity type onto its table."""

    name: str
    table_name: str
    associations: tuple[Association, ...] = field(default_factory=tuple)

    def association(self, field_name: str) -> Optional[Association]:
        for assoc in self.associations:
            if assoc.field_name == field_name:
                return assoc
        return None


class MappingProvider(Protocol):
    """External accessor for the mapping metadata of every entity."""

    def load_entities(self) -> Iterable[EntityMapping]: ...


def _load_with_timeout(provider: MappingProvider, timeout: Optional[float]) -> list[EntityMapping]:
    """Call the provider, raising MetadataUnavailableError on failure or timeout."""
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    future = executor.submit(lambda: list(provider.load_entities()))
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError:
        raise MetadataUnavailableError(f"mapping provider exceeded {timeout}s timeout")
    except Exception as e:
        raise MetadataUnavailableError(f"mapping provider failed: {e}") from e
    finally:
        # Don't block on a provider that is still hanging
        executor.shutdown(wait=False)


class MappingSnapshot:
    """Entities indexed by name and by table, consistent for one analysis."""

    def __init__(
        self,
        entities: Optional[Iterable[EntityMapping]] = None,
        provider: Optional[MappingProvider] = None,
        timeout: Optional[float] = None,
    ):
        self._provider = provider
        self._timeout = timeout
        self._failure: Optional[MetadataUnavailableError] = None
        self._by_name: Optional[dict[str, EntityMapping]] = None
        self._by_table: Optional[dict[str, EntityMapping]] = None
        if entities is not None:
            self._index(entities)
        elif provider is None:
            self._index(())

    @classmethod
    def empty(cls) -> MappingSnapshot:
        return cls(())

    @classmethod
    def from_entities(cls, entities: Iterable[EntityMapping]) -> MappingSnapshot:
        return cls(entities)

    @classmethod
    def from_provider(
        cls, provider: MappingProvider, timeout: Optional[float] = None
    ) -> MappingSnapshot:
        return cls(provider=provider, timeout=timeout)

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> MappingSnapshot:
        """Build a snapshot from ``{entity: {"table": ..., "associations": [...]}}``.

        Each association is a dict with ``field``, ``cardinality``
        (``to-one``/``to-many``), ``target``, and optionally ``nullable``,
        ``fetch`` and ``join_columns``.
        """
        entities = []
        for name, entry in data.items():
            associations = tuple(
                Association(
                    field_name=a["field"],
                    cardinality=Cardinality(a["cardinality"]),
                    target_entity=a["target"],
                    nullable=a.get("nullable"),
                    fetch_strategy=FetchStrategy(a.get("fetch", "lazy")),
                    join_columns=tuple(a.get("join_columns", ())),
                )
                for a in entry.get("associations", ())
            )
            entities.append(
                EntityMapping(name=name, table_name=entry["table"], associations=associations)
            )
        return cls(entities)

    def _index(self, entities: Iterable[EntityMapping]) -> None:
        by_name: dict[str, EntityMapping] = {}
        by_table: dict[str, EntityMapping] = {}
        for entity in entities:
            by_name[entity.name] = entity
            by_table[entity.table_name.lower()] = entity
        self._by_name = by_name
        self._by_table = by_table

    def _ensure_loaded(self) -> None:
        if self._by_name is not None:
            return
        if self._failure is not None:
            raise self._failure
        try:
            entities = _load_with_timeout(self._provider, self._timeout)
        except MetadataUnavailableError as e:
            self._failure = e
            raise
        self._index(entities)
        logger.debug(f"Loaded mapping metadata for {len(self._by_name)} entities")

    @property
    def is_loaded(self) -> bool:
        """Whether entities are available without calling the provider."""
        return self._by_name is not None

    def entities(self) -> tuple[EntityMapping, ...]:
        self._ensure_loaded()
        return tuple(self._by_name.values())

    def entity(self, name: str) -> Optional[EntityMapping]:
        self._ensure_loaded()
        return self._by_name.get(name)

    def entity_for_table(self, table: str) -> Optional[EntityMapping]:
        """Find the entity mapped to ``table`` (case-insensitive)."""
        self._ensure_loaded()
        return self._by_table.get(table.lower())

    def target_table(self, association: Association) -> Optional[str]:
        target = self.entity(association.target_entity)
        return target.table_name if target is not None else None

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._by_name)
