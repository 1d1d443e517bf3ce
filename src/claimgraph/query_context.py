"""
Query execution context.

Provides:
- Query lifecycle state
- Per-query statistics (store calls, statements scanned, rows discarded)
- EXPLAIN output describing how a query will be resolved
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum, auto
from typing import Optional
import time
import uuid


class QueryState(IntEnum):
    """Query execution states."""
    PENDING = auto()     # Created but not started
    RUNNING = auto()     # Currently executing
    COMPLETED = auto()   # Finished successfully
    FAILED = auto()      # Failed with error


@dataclass
class QueryStats:
    """Statistics for query execution."""
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    state: QueryState = QueryState.PENDING
    statements_scanned: int = 0
    rows_discarded: int = 0
    rows_returned: int = 0
    store_calls: int = 0
    error: Optional[str] = None

    @property
    def duration_ms(self) -> float:
        """Query duration in milliseconds."""
        if self.start_time is None:
            return 0.0
        end = self.end_time or time.time()
        return (end - self.start_time) * 1000

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "duration_ms": self.duration_ms,
            "state": self.state.name,
            "statements_scanned": self.statements_scanned,
            "rows_discarded": self.rows_discarded,
            "rows_returned": self.rows_returned,
            "store_calls": self.store_calls,
            "error": self.error,
        }


@dataclass
class ExplainPlan:
    """How a query resolves, without touching the store."""
    query_type: str
    anchor: dict
    subject_variable: str
    statement_variable: Optional[str] = None
    value_variable: Optional[str] = None
    target_value: Optional[str] = None
    joins: list[dict] = field(default_factory=list)
    ignored_patterns: list[str] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    max_anchor_statements: int = 100

    def to_dict(self) -> dict:
        """Convert plan to dictionary."""
        return {
            "query_type": self.query_type,
            "anchor": self.anchor,
            "subject_variable": self.subject_variable,
            "statement_variable": self.statement_variable,
            "value_variable": self.value_variable,
            "target_value": self.target_value,
            "joins": self.joins,
            "ignored_patterns": self.ignored_patterns,
            "limit": self.limit,
            "offset": self.offset,
            "max_anchor_statements": self.max_anchor_statements,
        }

    def __str__(self) -> str:
        """Pretty-print the execution plan."""
        lines = [
            f"Query Type: {self.query_type}",
            f"Anchor: {self.anchor['shape']} on {self.anchor['property_id']}"
            f" (max {self.max_anchor_statements} statements)",
            f"Subject: {self.subject_variable}",
        ]
        if self.target_value is not None:
            lines.append(f"Target Value: {self.target_value}")
        if self.statement_variable:
            lines.append(f"Statement: {self.statement_variable}")
        if self.value_variable:
            lines.append(f"Value: {self.value_variable}")

        if self.joins:
            lines.extend(["", "Joins:"])
            for j in self.joins:
                lines.append(f"  - {j['type']} {j['property_id']} -> {j['object']}")

        if self.ignored_patterns:
            lines.extend(["", "Ignored:"])
            for p in self.ignored_patterns:
                lines.append(f"  - {p}")

        if self.limit is not None:
            lines.append(f"Limit: {self.limit} (not applied)")
        if self.offset is not None:
            lines.append(f"Offset: {self.offset} (not applied)")

        return "\n".join(lines)


@dataclass
class QueryContext:
    """
    Execution context for a single query.

    Tracks lifecycle and statistics; created per request and discarded
    after execution.
    """
    query_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    stats: QueryStats = field(default_factory=QueryStats)

    def start(self):
        """Mark query as started."""
        self.stats.start_time = time.time()
        self.stats.state = QueryState.RUNNING

    def complete(self, rows_returned: int = 0):
        """Mark query as completed."""
        self.stats.end_time = time.time()
        self.stats.state = QueryState.COMPLETED
        self.stats.rows_returned = rows_returned

    def fail(self, error: str):
        """Mark query as failed."""
        self.stats.end_time = time.time()
        self.stats.state = QueryState.FAILED
        self.stats.error = error

    def record_store_call(self):
        self.stats.store_calls += 1

    def add_scanned_statements(self, count: int):
        self.stats.statements_scanned += count

    def record_discard(self):
        self.stats.rows_discarded += 1
