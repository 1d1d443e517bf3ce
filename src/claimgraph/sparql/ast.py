"""
Parsed structure of a claim query.

Terms are classified once, at parse time, into a namespace so the executor
never has to re-inspect string prefixes.
"""

from dataclasses import dataclass, field
from typing import Optional
from enum import Enum


class QueryType(Enum):
    """Query form named by the leading keyword."""
    SELECT = "SELECT"
    CONSTRUCT = "CONSTRUCT"
    ASK = "ASK"
    DESCRIBE = "DESCRIBE"
    UNKNOWN = "UNKNOWN"


class Namespace(Enum):
    """What a term refers to."""
    PROPERTY = "prop"      # prop:P31   direct property of an entity
    CLAIM = "claim"        # claim:P31  property leading to a statement node
    VALUE = "value"        # value:     value of a statement node
    QUALIFIER = "qual"     # qual:P580
    REFERENCE = "ref"      # ref:P854
    ITEM = "item"          # item:Q5
    VARIABLE = "variable"  # ?x
    LITERAL = "literal"    # "Hello World"
    UNKNOWN = "unknown"    # any other prefix:local token

    @classmethod
    def from_prefix(cls, prefix: str) -> "Namespace":
        for ns in (cls.PROPERTY, cls.CLAIM, cls.VALUE, cls.QUALIFIER, cls.REFERENCE, cls.ITEM):
            if ns.value == prefix:
                return ns
        return cls.UNKNOWN


# Namespaces whose predicate can seed the search
ANCHOR_NAMESPACES = frozenset({Namespace.PROPERTY, Namespace.CLAIM})


@dataclass(frozen=True)
class Term:
    """
    A subject, predicate or object of a triple pattern.

    ``raw`` is the text as written (quotes removed for literals), ``value``
    is the local part: the id after the prefix for prefixed names, the
    full ``?name`` for variables and the text for literals.
    """
    raw: str
    namespace: Namespace
    value: str

    @property
    def is_variable(self) -> bool:
        return self.namespace is Namespace.VARIABLE

    def __str__(self) -> str:
        if self.namespace is Namespace.LITERAL:
            return f'"{self.raw}"'
        return self.raw

    def to_dict(self) -> dict:
        return {"raw": self.raw, "namespace": self.namespace.value, "value": self.value}


@dataclass(frozen=True)
class TriplePattern:
    """One ``subject predicate object`` statement of the WHERE block."""
    subject: Term
    predicate: Term
    object: Term

    def __str__(self) -> str:
        return f"{self.subject} {self.predicate} {self.object} ."

    def to_dict(self) -> dict:
        return {
            "subject": self.subject.raw,
            "predicate": self.predicate.raw,
            "object": self.object.raw,
        }


@dataclass
class ParsedQuery:
    """
    A parsed query.

    ``variables`` is either ``["*"]`` or a list of ``?name`` tokens.
    ``warnings`` lists the fragments the parser could not use; parsing
    itself never fails.
    """
    type: QueryType = QueryType.UNKNOWN
    variables: list[str] = field(default_factory=list)
    where_pattern: list[TriplePattern] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    warnings: list[str] = field(default_factory=list)

    def is_select_all(self) -> bool:
        """Check if this is a SELECT * query."""
        return "*" in self.variables

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "variables": list(self.variables),
            "where_pattern": [p.to_dict() for p in self.where_pattern],
            "limit": self.limit,
            "offset": self.offset,
            "warnings": list(self.warnings),
        }

    def __str__(self) -> str:
        parts = []
        if self.type is QueryType.SELECT:
            parts.append(f"SELECT {' '.join(self.variables)}")
        else:
            parts.append(self.type.value)

        parts.append("WHERE {")
        for pattern in self.where_pattern:
            parts.append(f"  {pattern}")
        parts.append("}")

        if self.limit is not None:
            parts.append(f"LIMIT {self.limit}")
        if self.offset is not None:
            parts.append(f"OFFSET {self.offset}")

        return "\n".join(parts)
