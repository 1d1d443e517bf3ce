"""
Schema search for claimgraph.

Structured entity search, complementary to claim queries:
- free-text search with relevance ranking (exact phrases, excluded terms)
- property-value conditions with match modes (contains, equal, numeric ...)
- claim conditions requiring qualifiers and references
- nested groups combined with AND/OR logic

A schema looks like::

    {
        "text": "douglas",
        "properties": [{"propertyId": "P31", "value": "Q5", "matchMode": "equal"}],
        "claims": [{"propertyId": "P69", "qualifiers": [{"propertyId": "P580", "value": "1971"}]}],
        "groups": [{"logic": "OR", "properties": [...]}],
        "logic": "AND"
    }
"""
from __future__ import annotations

import json
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from claimgraph.models import Entity, Qualifier, Reference, Statement
from claimgraph.store import StatementStore

logger = logging.getLogger(__name__)

PAGE_SIZE = 100

ScalarValue = Union[str, int, float, bool]


# =============================================================================
# Schema models
# =============================================================================

class MatchMode(str, Enum):
    """How a stored value is compared to a condition value."""
    EQUAL = "equal"
    NOT_EQUAL = "notEqual"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    GREATER_THAN = "greaterThan"
    GREATER_THAN_EQUAL = "greaterThanEqual"
    LESS_THAN = "lessThan"
    LESS_THAN_EQUAL = "lessThanEqual"
    CONTAINS = "contains"


class PropertyCondition(BaseModel):
    """Entity has a statement with this property whose value matches."""
    model_config = ConfigDict(populate_by_name=True)

    property_id: Optional[str] = Field(None, alias="propertyId")
    value: Optional[ScalarValue] = None
    match_mode: MatchMode = Field(MatchMode.CONTAINS, alias="matchMode")


class QualifierCondition(BaseModel):
    """Statement carries a qualifier with this property and value."""
    model_config = ConfigDict(populate_by_name=True)

    property_id: str = Field(..., alias="propertyId")
    value: Optional[ScalarValue] = None
    match_mode: Literal["equal", "contains"] = Field("contains", alias="matchMode")


class ReferenceCondition(BaseModel):
    """Statement cites this source entity."""
    model_config = ConfigDict(populate_by_name=True)

    reference_id: str = Field(..., alias="referenceId")


class ClaimCondition(BaseModel):
    """Entity has a statement satisfying every listed constraint."""
    model_config = ConfigDict(populate_by_name=True)

    property_id: str = Field(..., alias="propertyId")
    value: Optional[ScalarValue] = None
    value_match_mode: Literal["equal", "contains"] = Field("contains", alias="valueMatchMode")
    qualifiers: list[QualifierCondition] = Field(default_factory=list)
    references: list[ReferenceCondition] = Field(default_factory=list)


class SearchSchema(BaseModel):
    """A search over entities; conditions are combined with ``logic``."""
    text: Optional[str] = None
    properties: list[PropertyCondition] = Field(default_factory=list)
    claims: list[ClaimCondition] = Field(default_factory=list)
    groups: list["SearchSchema"] = Field(default_factory=list)
    logic: Literal["AND", "OR"] = "AND"


SearchSchema.model_rebuild()


# =============================================================================
# Text helpers
# =============================================================================

def normalize_text(value: Any) -> str:
    """Lower-case, strip accents and punctuation, collapse whitespace."""
    text = unicodedata.normalize("NFD", str(value if value is not None else "").lower())
    text = re.sub("[\u0300-\u036f]", "", text).strip()
    text = re.sub(r"[^a-z0-9\s]", "", text)
    return re.sub(r"\s+", " ", text).strip()


def stringify_value(raw: Any) -> str:
    """Render a stored value as comparable text."""
    if raw is None:
        return ""
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return raw
        if isinstance(parsed, (str, int, float, bool)):
            return str(parsed)
        if isinstance(parsed, dict) and parsed.get("url"):
            return str(parsed["url"])
        return raw
    if isinstance(raw, dict) and raw.get("url"):
        return str(raw["url"])
    try:
        return json.dumps(raw)
    except TypeError:
        return str(raw)


def _to_number(text: str) -> Optional[float]:
    try:
        return float(text.strip())
    except ValueError:
        return None


def value_matches(raw: Any, condition: Any, mode: MatchMode) -> bool:
    """
    Compare a stored value to a condition value.

    String modes work on normalized text; numeric modes parse both sides
    as numbers and never match otherwise.
    """
    stored = stringify_value(raw)
    value = normalize_text(stored)
    target = normalize_text(condition)
    if not value or not target:
        return False

    if mode in (MatchMode.GREATER_THAN, MatchMode.GREATER_THAN_EQUAL,
                MatchMode.LESS_THAN, MatchMode.LESS_THAN_EQUAL):
        left = _to_number(stored)
        right = _to_number(str(condition))
        if left is None or right is None:
            return False
        if mode is MatchMode.GREATER_THAN:
            return left > right
        if mode is MatchMode.GREATER_THAN_EQUAL:
            return left >= right
        if mode is MatchMode.LESS_THAN:
            return left < right
        return left <= right

    if mode is MatchMode.EQUAL:
        return value == target
    if mode is MatchMode.NOT_EQUAL:
        return value != target
    if mode is MatchMode.STARTS_WITH:
        return value.startswith(target)
    if mode is MatchMode.ENDS_WITH:
        return value.endswith(target)
    return target in value


@dataclass
class ParsedSearch:
    """Free text split into exact phrases, excluded and optional terms."""
    raw_text: str = ""
    exact_phrases: list[str] = field(default_factory=list)
    excluded_terms: list[str] = field(default_factory=list)
    optional_terms: list[str] = field(default_factory=list)

    @property
    def required_terms(self) -> list[str]:
        return self.exact_phrases + self.optional_terms


def parse_search_query(query: Optional[str]) -> ParsedSearch:
    """
    Split search text: ``"exact phrase"``, ``-excluded`` and plain terms.
    """
    result = ParsedSearch(raw_text=query or "")
    if not query:
        return result

    remaining = query
    for match in re.finditer(r'"([^"]+)"', query):
        if match.group(1).strip():
            result.exact_phrases.append(normalize_text(match.group(1)))
        remaining = remaining.replace(match.group(0), " ", 1)

    for token in remaining.split():
        if token.startswith("-") and len(token) > 1:
            result.excluded_terms.append(normalize_text(token[1:]))
        else:
            norm = normalize_text(token)
            if norm:
                result.optional_terms.append(norm)
    return result


def calculate_relevance(entity: Entity, parsed: ParsedSearch) -> int:
    """Score an entity against parsed search text; negative means excluded."""
    label = normalize_text(entity.label)
    description = normalize_text(entity.description)
    aliases = [normalize_text(a) for a in entity.aliases]
    entity_id = normalize_text(entity.id)
    full_text = normalize_text(parsed.raw_text)

    score = 0
    if label == full_text:
        score += 1000
    if full_text in aliases:
        score += 900
    if entity_id == full_text:
        score += 800
    if label.startswith(full_text):
        score += 600
    if any(a.startswith(full_text) for a in aliases):
        score += 500

    for term in parsed.required_terms:
        if label == term:
            score += 100
        elif label.startswith(term):
            score += 80
        elif term in label:
            score += 50

        if term in aliases:
            score += 90
        elif any(a.startswith(term) for a in aliases):
            score += 70
        elif any(term in a for a in aliases):
            score += 40

        if term in description:
            score += 20

        if entity_id == term:
            score += 100
        elif term in entity_id:
            score += 10

    for term in parsed.excluded_terms:
        if term in label or term in description or any(term in a for a in aliases):
            score -= 5000

    return score


def claim_matches(
    statement: Statement,
    condition: ClaimCondition,
    qualifiers: list[Qualifier],
    references: list[Reference],
) -> bool:
    """Check a statement (with its qualifiers and references) against a claim condition."""
    if statement.property_id != condition.property_id:
        return False

    if condition.value not in (None, ""):
        if not value_matches(statement.resolved_value, condition.value, MatchMode(condition.value_match_mode)):
            return False

    for q_condition in condition.qualifiers:
        if not any(
            q.property_id == q_condition.property_id
            and (q_condition.value in (None, "")
                 or value_matches(q.resolved_value, q_condition.value, MatchMode(q_condition.match_mode)))
            for q in qualifiers
        ):
            return False

    for r_condition in condition.references:
        if not any(r.reference_id == r_condition.reference_id for r in references):
            return False

    return True


def _merge(logic: str, current: list[str], new: list[str], intersect: bool) -> list[str]:
    """Combine id lists keeping first-seen order."""
    if logic == "AND":
        if not intersect:
            return list(new)
        new_ids = set(new)
        return [i for i in current if i in new_ids]
    return list(dict.fromkeys(current + new))


# =============================================================================
# Searcher
# =============================================================================

class SchemaSearcher:
    """
    Runs schema searches against a StatementStore.

    Example:
        searcher = SchemaSearcher(store)
        entities = await searcher.search(SearchSchema(text="adams"), limit=10)
    """

    def __init__(self, store: StatementStore):
        self.store = store

    async def search_text(self, text: str, limit: int = 20, offset: int = 0) -> list[Entity]:
        """Entities matching free text, best match first."""
        parsed = parse_search_query(text)
        candidates = await self.store.search_entities(parsed.required_terms, limit * 3, offset)
        if not text or not candidates:
            return candidates[:limit]

        scored = [(calculate_relevance(e, parsed), e) for e in candidates]
        scored = [(score, e) for score, e in scored if score >= 0]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [e for _, e in scored[:limit]]

    async def search_by_property_value(
        self,
        property_id: str,
        value: Any,
        limit: int = 10,
        match_mode: MatchMode = MatchMode.CONTAINS,
    ) -> list[str]:
        """Subject ids of statements with ``property_id`` whose value matches."""
        if not property_id or value is None or value == "":
            return []

        entity_ids: dict[str, None] = {}
        offset = 0
        while len(entity_ids) < limit:
            page = await self.store.list_statements(property_id, offset, PAGE_SIZE)
            if not page:
                break
            for statement in page:
                if value_matches(statement.resolved_value, value, match_mode):
                    entity_ids.setdefault(statement.subject_id)
                if len(entity_ids) >= limit:
                    break
            if len(page) < PAGE_SIZE:
                break
            offset += PAGE_SIZE

        return list(entity_ids)[:limit]

    async def search_claims(self, condition: ClaimCondition, limit: int = 50) -> list[str]:
        """Subject ids of statements satisfying a claim condition."""
        needs_details = bool(condition.qualifiers or condition.references)
        subject_ids: dict[str, None] = {}
        offset = 0

        while len(subject_ids) < limit:
            page = await self.store.list_statements(condition.property_id, offset, PAGE_SIZE)
            if not page:
                break

            for statement in page:
                qualifiers: list[Qualifier] = []
                references: list[Reference] = []
                if needs_details:
                    try:
                        qualifiers = await self.store.get_qualifiers(statement.id)
                        references = await self.store.get_references(statement.id)
                    except Exception as e:
                        logger.warning(f"Could not load details of statement {statement.id}: {e}")
                        continue

                if claim_matches(statement, condition, qualifiers, references):
                    subject_ids.setdefault(statement.subject_id)
                    if len(subject_ids) >= limit:
                        break

            if len(page) < PAGE_SIZE:
                break
            offset += PAGE_SIZE

        return list(subject_ids)

    async def find_entity_ids(self, schema: SearchSchema, limit: int) -> list[str]:
        """
        Ids of entities matching a schema.

        Text, properties, claims and groups are applied in that order. With
        AND logic each condition narrows the candidates; with OR logic each
        adds to them. A schema without any usable condition matches nothing.
        """
        logger.debug(f"Schema lookup with {schema.logic} logic")
        candidates: list[str] = []
        processed = False

        if schema.text:
            matches = await self.search_text(schema.text, limit * 5)
            candidates = [e.id for e in matches]
            processed = True

        categories = (
            [partial(self._property_ids, c, limit * 5) for c in schema.properties
             if c.property_id and c.value not in (None, "")],
            [partial(self.search_claims, c, limit * 5) for c in schema.claims],
            [partial(self.find_entity_ids, g, limit) for g in schema.groups],
        )
        for lookups in categories:
            if not lookups:
                continue
            merged = candidates if processed else []
            for i, lookup in enumerate(lookups):
                ids = await lookup()
                merged = _merge(schema.logic, merged, ids, intersect=processed or i > 0)
            candidates = merged
            processed = True

        return candidates if processed else []

    async def _property_ids(self, condition: PropertyCondition, limit: int) -> list[str]:
        return await self.search_by_property_value(
            condition.property_id, condition.value, limit, condition.match_mode
        )

    async def search(self, schema: SearchSchema, limit: int = 50, offset: int = 0) -> list[dict]:
        """
        Run a schema search and return one page of entities.

        Entities that disappear between matching and fetching are skipped.
        """
        all_ids = await self.find_entity_ids(schema, limit + offset + 50)
        page_ids = all_ids[offset:offset + limit]

        entities = []
        for entity_id in page_ids:
            entity = await self.store.get_entity(entity_id)
            if entity is None:
                logger.info(f"Entity {entity_id} not found")
                continue
            entities.append(entity.to_dict())
        return entities
