"""
Record types for the claimgraph statement store.

An entity carries claims (statements). Each statement asserts one
property-value pair about its subject entity and may carry qualifiers
(secondary property-value pairs such as a start date) and references
(citations backing the statement).
"""

from dataclasses import dataclass, field
from typing import Any, Optional
import json


def coerce_value(raw: Any) -> Optional[str]:
    """Store values as text; structured values are kept as JSON."""
    if raw is None:
        return None
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (dict, list)):
        return json.dumps(raw)
    return str(raw)


@dataclass
class Entity:
    """An item in the knowledge base (e.g. Q5)."""
    id: str
    label: Optional[str] = None
    description: Optional[str] = None
    aliases: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "aliases": list(self.aliases),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Entity":
        return cls(
            id=data["id"],
            label=data.get("label"),
            description=data.get("description"),
            aliases=list(data.get("aliases") or []),
        )


@dataclass
class Statement:
    """
    A claim: ``subject_id`` has ``property_id`` with a value.

    ``value_relation`` holds an entity id when the value points at another
    item instead of (or in addition to) a raw value.
    """
    id: str
    subject_id: str
    property_id: str
    value: Optional[str] = None
    value_relation: Optional[str] = None
    datatype: str = "string"

    @property
    def resolved_value(self) -> Optional[str]:
        """The raw value, falling back to the related entity id."""
        return self.value if self.value is not None else self.value_relation

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subject_id": self.subject_id,
            "property_id": self.property_id,
            "value": self.value,
            "value_relation": self.value_relation,
            "datatype": self.datatype,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Statement":
        relation = data.get("value_relation")
        return cls(
            id=data["id"],
            subject_id=data["subject_id"],
            property_id=data["property_id"],
            value=coerce_value(data.get("value")),
            value_relation=relation,
            datatype=data.get("datatype") or ("relation" if relation else "string"),
        )


@dataclass
class Qualifier:
    """A property-value pair attached to a statement."""
    id: str
    statement_id: str
    property_id: str
    value: Optional[str] = None
    value_relation: Optional[str] = None
    datatype: str = "string"

    @property
    def resolved_value(self) -> Optional[str]:
        return self.value if self.value is not None else self.value_relation

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "statement_id": self.statement_id,
            "property_id": self.property_id,
            "value": self.value,
            "value_relation": self.value_relation,
            "datatype": self.datatype,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Qualifier":
        relation = data.get("value_relation")
        return cls(
            id=data["id"],
            statement_id=data["statement_id"],
            property_id=data["property_id"],
            value=coerce_value(data.get("value")),
            value_relation=relation,
            datatype=data.get("datatype") or ("relation" if relation else "string"),
        )


@dataclass
class Reference:
    """
    A citation backing a statement.

    ``reference_id`` is the cited source entity, if the reference points at
    one; ``property_id``/``value`` describe the citation itself (e.g. a
    reference URL under P854).
    """
    id: str
    statement_id: str
    property_id: Optional[str] = None
    value: Optional[str] = None
    reference_id: Optional[str] = None

    @property
    def resolved_value(self) -> Optional[str]:
        return self.value if self.value is not None else self.reference_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "statement_id": self.statement_id,
            "property_id": self.property_id,
            "value": self.value,
            "reference_id": self.reference_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Reference":
        return cls(
            id=data["id"],
            statement_id=data["statement_id"],
            property_id=data.get("property_id"),
            value=coerce_value(data.get("value")),
            reference_id=data.get("reference_id"),
        )
