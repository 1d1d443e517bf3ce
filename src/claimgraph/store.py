"""
Statement store: the storage collaborator of the query engine.

``StatementStore`` is the async capability contract the executor and the
schema search depend on. ``MemoryStatementStore`` implements it on top of
Polars DataFrames (one frame per record kind), which is what the HTTP
service and the tests use.

Key design:
- Statement order is insertion order; lookups never re-sort
- A statement matches a target value when either its raw value or its
  related entity id equals the target
- Writes are serialised with a lock; reads work on the current frame
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional
from uuid import uuid4
import json
import logging
import threading

import polars as pl

from claimgraph.models import Entity, Qualifier, Reference, Statement, coerce_value

logger = logging.getLogger(__name__)


ENTITY_SCHEMA = {
    "id": pl.Utf8,
    "label": pl.Utf8,
    "description": pl.Utf8,
    "aliases": pl.List(pl.Utf8),
}

STATEMENT_SCHEMA = {
    "id": pl.Utf8,
    "subject_id": pl.Utf8,
    "property_id": pl.Utf8,
    "value": pl.Utf8,
    "value_relation": pl.Utf8,
    "datatype": pl.Utf8,
}

QUALIFIER_SCHEMA = {
    "id": pl.Utf8,
    "statement_id": pl.Utf8,
    "property_id": pl.Utf8,
    "value": pl.Utf8,
    "value_relation": pl.Utf8,
    "datatype": pl.Utf8,
}

REFERENCE_SCHEMA = {
    "id": pl.Utf8,
    "statement_id": pl.Utf8,
    "property_id": pl.Utf8,
    "value": pl.Utf8,
    "reference_id": pl.Utf8,
}


def _entity_from_row(row: dict) -> Entity:
    return Entity(
        id=row["id"],
        label=row["label"],
        description=row["description"],
        aliases=list(row["aliases"] or []),
    )


class StatementStore(ABC):
    """
    Async contract for the backing store.

    Every method is a suspension point for the caller. Implementations
    decide their own consistency guarantees; callers assume read-committed
    semantics with no multi-call transaction.
    """

    # -------------------------------------------------------------------------
    # Query engine lookups
    # -------------------------------------------------------------------------

    @abstractmethod
    async def find_statements(
        self,
        property_id: str,
        value: Optional[str] = None,
        max_results: int = 100,
    ) -> list[Statement]:
        """Statements with ``property_id`` (and ``value``, if given), in store order."""

    @abstractmethod
    async def find_qualifier(self, statement_id: str, property_id: str) -> Optional[Qualifier]:
        """The first qualifier of ``statement_id`` with ``property_id``."""

    @abstractmethod
    async def find_reference(self, statement_id: str, property_id: str) -> Optional[Reference]:
        """The first reference of ``statement_id`` with ``property_id``."""

    @abstractmethod
    async def get_entity_label(self, entity_id: str) -> Optional[str]:
        """Display label of an entity, or None."""

    # -------------------------------------------------------------------------
    # Schema search lookups
    # -------------------------------------------------------------------------

    @abstractmethod
    async def search_entities(self, terms: list[str], limit: int, offset: int = 0) -> list[Entity]:
        """Entities matching every term; newest first when no terms are given."""

    @abstractmethod
    async def list_statements(self, property_id: str, offset: int = 0, limit: int = 100) -> list[Statement]:
        """One page of statements with ``property_id``."""

    @abstractmethod
    async def get_qualifiers(self, statement_id: str) -> list[Qualifier]:
        ...

    @abstractmethod
    async def get_references(self, statement_id: str) -> list[Reference]:
        ...

    @abstractmethod
    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        ...


class MemoryStatementStore(StatementStore):
    """
    In-memory statement store backed by Polars DataFrames.

    Example:
        store = MemoryStatementStore()
        store.add_entity("Q42", label="Douglas Adams")
        sid = store.add_statement("Q42", "P31", value="Q5")
        store.add_qualifier(sid, "P580", value="1952-03-11")
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entities = pl.DataFrame(schema=ENTITY_SCHEMA)
        self._statements = pl.DataFrame(schema=STATEMENT_SCHEMA)
        self._qualifiers = pl.DataFrame(schema=QUALIFIER_SCHEMA)
        self._references = pl.DataFrame(schema=REFERENCE_SCHEMA)

    # =========================================================================
    # Writes
    # =========================================================================

    @staticmethod
    def _append(df: pl.DataFrame, rows: list[dict], schema: dict) -> pl.DataFrame:
        if not rows:
            return df
        return pl.concat([df, pl.DataFrame(rows, schema=schema)], how="vertical")

    def add_entity(
        self,
        entity_id: str,
        label: Optional[str] = None,
        description: Optional[str] = None,
        aliases: Optional[Iterable[str]] = None,
    ) -> str:
        """Add an entity. Returns its id."""
        row = {
            "id": entity_id,
            "label": label,
            "description": description,
            "aliases": list(aliases or []),
        }
        with self._lock:
            self._entities = self._append(self._entities, [row], ENTITY_SCHEMA)
        return entity_id

    def add_statement(
        self,
        subject_id: str,
        property_id: str,
        value: Any = None,
        value_relation: Optional[str] = None,
        datatype: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> str:
        """Add a statement about ``subject_id``. Returns the statement id."""
        row = {
            "id": record_id or str(uuid4()),
            "subject_id": subject_id,
            "property_id": property_id,
            "value": coerce_value(value),
            "value_relation": value_relation,
            "datatype": datatype or ("relation" if value_relation else "string"),
        }
        with self._lock:
            self._statements = self._append(self._statements, [row], STATEMENT_SCHEMA)
        return row["id"]

    def add_qualifier(
        self,
        statement_id: str,
        property_id: str,
        value: Any = None,
        value_relation: Optional[str] = None,
        datatype: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> str:
        """Attach a qualifier to a statement. Returns the qualifier id."""
        row = {
            "id": record_id or str(uuid4()),
            "statement_id": statement_id,
            "property_id": property_id,
            "value": coerce_value(value),
            "value_relation": value_relation,
            "datatype": datatype or ("relation" if value_relation else "string"),
        }
        with self._lock:
            self._qualifiers = self._append(self._qualifiers, [row], QUALIFIER_SCHEMA)
        return row["id"]

    def add_reference(
        self,
        statement_id: str,
        property_id: Optional[str] = None,
        value: Any = None,
        reference_id: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> str:
        """Attach a reference to a statement. Returns the reference record id."""
        row = {
            "id": record_id or str(uuid4()),
            "statement_id": statement_id,
            "property_id": property_id,
            "value": coerce_value(value),
            "reference_id": reference_id,
        }
        with self._lock:
            self._references = self._append(self._references, [row], REFERENCE_SCHEMA)
        return row["id"]

    # =========================================================================
    # Query engine lookups
    # =========================================================================

    async def find_statements(
        self,
        property_id: str,
        value: Optional[str] = None,
        max_results: int = 100,
    ) -> list[Statement]:
        df = self._statements.filter(pl.col("property_id") == property_id)
        if value is not None:
            df = df.filter((pl.col("value") == value) | (pl.col("value_relation") == value))
        return [Statement(**row) for row in df.head(max_results).iter_rows(named=True)]

    async def find_qualifier(self, statement_id: str, property_id: str) -> Optional[Qualifier]:
        df = self._qualifiers.filter(
            (pl.col("statement_id") == statement_id) & (pl.col("property_id") == property_id)
        ).head(1)
        if df.is_empty():
            return None
        return Qualifier(**df.row(0, named=True))

    async def find_reference(self, statement_id: str, property_id: str) -> Optional[Reference]:
        df = self._references.filter(
            (pl.col("statement_id") == statement_id) & (pl.col("property_id") == property_id)
        ).head(1)
        if df.is_empty():
            return None
        return Reference(**df.row(0, named=True))

    async def get_entity_label(self, entity_id: str) -> Optional[str]:
        entity = await self.get_entity(entity_id)
        return entity.label if entity else None

    # =========================================================================
    # Schema search lookups
    # =========================================================================

    async def search_entities(self, terms: list[str], limit: int, offset: int = 0) -> list[Entity]:
        df = self._entities
        if terms:
            for term in terms:
                df = df.filter(
                    pl.col("label").fill_null("").str.to_lowercase().str.contains(term, literal=True)
                    | pl.col("description").fill_null("").str.to_lowercase().str.contains(term, literal=True)
                    | pl.col("aliases")
                        .list.eval(pl.element().str.to_lowercase().str.contains(term, literal=True))
                        .list.any()
                        .fill_null(False)
                    | (pl.col("id").str.to_lowercase() == term)
                )
        else:
            # Most recently added first
            df = df.reverse()
        return [_entity_from_row(row) for row in df.slice(offset, limit).iter_rows(named=True)]

    async def list_statements(self, property_id: str, offset: int = 0, limit: int = 100) -> list[Statement]:
        df = self._statements.filter(pl.col("property_id") == property_id).slice(offset, limit)
        return [Statement(**row) for row in df.iter_rows(named=True)]

    async def get_qualifiers(self, statement_id: str) -> list[Qualifier]:
        df = self._qualifiers.filter(pl.col("statement_id") == statement_id)
        return [Qualifier(**row) for row in df.iter_rows(named=True)]

    async def get_references(self, statement_id: str) -> list[Reference]:
        df = self._references.filter(pl.col("statement_id") == statement_id)
        return [Reference(**row) for row in df.iter_rows(named=True)]

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        df = self._entities.filter(pl.col("id") == entity_id).head(1)
        if df.is_empty():
            return None
        return _entity_from_row(df.row(0, named=True))

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_dict(self) -> dict:
        return {
            "entities": self._entities.to_dicts(),
            "statements": self._statements.to_dicts(),
            "qualifiers": self._qualifiers.to_dicts(),
            "references": self._references.to_dicts(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MemoryStatementStore":
        """
        Build a store from a dict with ``entities``, ``statements``,
        ``qualifiers`` and ``references`` lists.
        """
        store = cls()
        entities = [Entity.from_dict(e).to_dict() for e in data.get("entities", [])]
        statements = [Statement.from_dict(s).to_dict() for s in data.get("statements", [])]
        qualifiers = [Qualifier.from_dict(q).to_dict() for q in data.get("qualifiers", [])]
        references = [Reference.from_dict(r).to_dict() for r in data.get("references", [])]

        store._entities = cls._append(store._entities, entities, ENTITY_SCHEMA)
        store._statements = cls._append(store._statements, statements, STATEMENT_SCHEMA)
        store._qualifiers = cls._append(store._qualifiers, qualifiers, QUALIFIER_SCHEMA)
        store._references = cls._append(store._references, references, REFERENCE_SCHEMA)
        return store

    def save_json(self, path: Path | str) -> None:
        """Save the store to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_json(cls, path: Path | str) -> "MemoryStatementStore":
        """Load a store previously saved with ``save_json`` (or hand-written seed data)."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        store = cls.from_dict(data)
        logger.info(f"Loaded statement store from {path}: {store.stats()}")
        return store

    def stats(self) -> dict[str, Any]:
        """Get statistics about the store."""
        return {
            "entities": self._entities.height,
            "statements": self._statements.height,
            "qualifiers": self._qualifiers.height,
            "references": self._references.height,
            "unique_properties": self._statements.select("property_id").unique().height,
        }

    def __len__(self) -> int:
        """Return the number of statements."""
        return self._statements.height

    def __repr__(self) -> str:
        stats = self.stats()
        return (
            f"MemoryStatementStore("
            f"entities={stats['entities']}, "
            f"statements={stats['statements']})"
        )
