"""Tests for the in-memory statement store."""
import pytest

from claimgraph.models import Entity, Qualifier, Reference, Statement, coerce_value
from claimgraph.store import MemoryStatementStore, StatementStore


# ========== Model Tests ==========

class TestModels:
    def test_coerce_value(self):
        assert coerce_value(None) is None
        assert coerce_value("text") == "text"
        assert coerce_value(42) == "42"
        assert coerce_value({"url": "https://example.org"}) == '{"url": "https://example.org"}'

    def test_statement_resolved_value(self):
        assert Statement("s1", "e1", "P31", value="Q5").resolved_value == "Q5"
        assert Statement("s1", "e1", "P31", value_relation="Q5").resolved_value == "Q5"

    def test_reference_resolved_value(self):
        assert Reference("r1", "s1", "P248", reference_id="e9").resolved_value == "e9"
        assert Reference("r1", "s1", "P854", value="https://x").resolved_value == "https://x"

    def test_datatype_default_from_dict(self):
        assert Statement.from_dict(
            {"id": "s1", "subject_id": "e1", "property_id": "P31", "value_relation": "Q5"}
        ).datatype == "relation"
        assert Qualifier.from_dict(
            {"id": "q1", "statement_id": "s1", "property_id": "P580", "value": "2000"}
        ).datatype == "string"

    def test_entity_round_trip(self):
        entity = Entity("e1", label="Douglas Adams", aliases=["DNA"])
        assert Entity.from_dict(entity.to_dict()) == entity


# ========== Store Tests ==========

class TestWrites:
    def test_is_statement_store(self, store):
        assert isinstance(store, StatementStore)

    def test_add_statement_generates_id(self, store):
        sid = store.add_statement("e1", "P31", value="Q5")
        assert sid
        assert len(store) == 1

    def test_add_statement_keeps_given_id(self, store):
        assert store.add_statement("e1", "P31", value="Q5", record_id="s1") == "s1"

    def test_stats(self, seeded_store):
        stats = seeded_store.stats()
        assert stats["entities"] == 4
        assert stats["statements"] == 6
        assert stats["qualifiers"] == 2
        assert stats["references"] == 2
        assert stats["unique_properties"] == 3

    def test_repr(self, seeded_store):
        assert repr(seeded_store) == "MemoryStatementStore(entities=4, statements=6)"


class TestLookups:
    @pytest.mark.asyncio
    async def test_find_statements_by_property(self, seeded_store):
        statements = await seeded_store.find_statements("P31")
        assert [s.id for s in statements] == ["s1", "s2", "s3"]

    @pytest.mark.asyncio
    async def test_find_statements_by_value_or_relation(self, seeded_store):
        statements = await seeded_store.find_statements("P31", "Q5")
        assert [s.id for s in statements] == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_find_statements_max_results(self, store):
        for i in range(5):
            store.add_statement(f"e{i}", "P31", value="Q5")
        statements = await store.find_statements("P31", "Q5", max_results=2)
        assert [s.subject_id for s in statements] == ["e0", "e1"]

    @pytest.mark.asyncio
    async def test_find_qualifier(self, seeded_store):
        qualifier = await seeded_store.find_qualifier("s1", "P580")
        assert qualifier.value == "1952-03-11"
        assert await seeded_store.find_qualifier("s2", "P580") is None

    @pytest.mark.asyncio
    async def test_find_qualifier_returns_first(self, store):
        store.add_qualifier("s1", "P580", value="first")
        store.add_qualifier("s1", "P580", value="second")
        qualifier = await store.find_qualifier("s1", "P580")
        assert qualifier.value == "first"

    @pytest.mark.asyncio
    async def test_find_reference(self, seeded_store):
        reference = await seeded_store.find_reference("s1", "P248")
        assert reference.reference_id == "e9"
        assert await seeded_store.find_reference("s1", "P854") is None

    @pytest.mark.asyncio
    async def test_get_entity_label(self, seeded_store):
        assert await seeded_store.get_entity_label("e1") == "Douglas Adams"
        assert await seeded_store.get_entity_label("missing") is None

    @pytest.mark.asyncio
    async def test_get_entity(self, seeded_store):
        entity = await seeded_store.get_entity("e1")
        assert entity == Entity("e1", "Douglas Adams", "English writer", ["DNA"])

    @pytest.mark.asyncio
    async def test_list_statements_pages(self, store):
        for i in range(5):
            store.add_statement(f"e{i}", "P31", value="Q5")
        page = await store.list_statements("P31", offset=2, limit=2)
        assert [s.subject_id for s in page] == ["e2", "e3"]

    @pytest.mark.asyncio
    async def test_get_qualifiers_and_references(self, seeded_store):
        assert [q.id for q in await seeded_store.get_qualifiers("s4")] == ["q2"]
        assert [r.id for r in await seeded_store.get_references("s4")] == ["r2"]
        assert await seeded_store.get_qualifiers("s6") == []


class TestSearchEntities:
    @pytest.mark.asyncio
    async def test_matches_label(self, seeded_store):
        entities = await seeded_store.search_entities(["adams"], limit=10)
        assert [e.id for e in entities] == ["e1"]

    @pytest.mark.asyncio
    async def test_all_terms_required(self, seeded_store):
        entities = await seeded_store.search_entities(["english", "writer"], limit=10)
        assert [e.id for e in entities] == ["e1"]

    @pytest.mark.asyncio
    async def test_matches_alias(self, seeded_store):
        entities = await seeded_store.search_entities(["dna"], limit=10)
        assert [e.id for e in entities] == ["e1"]

    @pytest.mark.asyncio
    async def test_no_terms_newest_first(self, seeded_store):
        entities = await seeded_store.search_entities([], limit=2)
        assert [e.id for e in entities] == ["Q5", "e3"]

    @pytest.mark.asyncio
    async def test_offset(self, seeded_store):
        entities = await seeded_store.search_entities(["english"], limit=10, offset=1)
        assert [e.id for e in entities] == ["e2"]


class TestPersistence:
    def test_from_dict(self):
        store = MemoryStatementStore.from_dict({
            "entities": [{"id": "e1", "label": "Douglas Adams"}],
            "statements": [{"id": "s1", "subject_id": "e1", "property_id": "P31", "value": "Q5"}],
            "qualifiers": [{"id": "q1", "statement_id": "s1", "property_id": "P580", "value": 1952}],
        })
        stats = store.stats()
        assert stats["entities"] == 1
        assert stats["statements"] == 1
        assert stats["qualifiers"] == 1
        assert stats["references"] == 0

    @pytest.mark.asyncio
    async def test_save_and_load(self, seeded_store, tmp_path):
        path = tmp_path / "data" / "store.json"
        seeded_store.save_json(path)

        loaded = MemoryStatementStore.load_json(path)

        assert loaded.stats() == seeded_store.stats()
        assert [s.id for s in await loaded.find_statements("P31", "Q5")] == ["s1", "s2"]
        assert (await loaded.get_entity("e1")).aliases == ["DNA"]
