"""Shared fixtures for claimgraph tests."""
import pytest

from claimgraph.store import MemoryStatementStore


@pytest.fixture
def store():
    """Empty in-memory store."""
    return MemoryStatementStore()


@pytest.fixture
def seeded_store():
    """
    A small knowledge base:

    - e1 (Douglas Adams) instance of Q5, educated at St John's with a start date
    - e2 (Ada Lovelace) instance of Q5, no qualifiers
    - e3 (Towel) instance of Q39546
    """
    store = MemoryStatementStore()
    store.add_entity("e1", label="Douglas Adams", description="English writer", aliases=["DNA"])
    store.add_entity("e2", label="Ada Lovelace", description="English mathematician")
    store.add_entity("e3", label="Towel", description="Useful item")
    store.add_entity("Q5", label="human")

    store.add_statement("e1", "P31", value_relation="Q5", record_id="s1")
    store.add_statement("e2", "P31", value="Q5", record_id="s2")
    store.add_statement("e3", "P31", value="Q39546", record_id="s3")
    store.add_statement("e1", "P69", value="St John's College", record_id="s4")
    store.add_statement("e1", "P1082", value=42, record_id="s5")
    store.add_statement("e2", "P1082", value=7, record_id="s6")

    store.add_qualifier("s1", "P580", value="1952-03-11", record_id="q1")
    store.add_qualifier("s4", "P580", value="1971", record_id="q2")
    store.add_reference("s1", "P248", reference_id="e9", record_id="r1")
    store.add_reference("s4", "P248", reference_id="e9", record_id="r2")
    return store
