"""
Tests for query execution context and EXPLAIN output.
"""

from claimgraph.query_context import ExplainPlan, QueryContext, QueryState, QueryStats


class TestQueryStats:
    def test_duration_before_start(self):
        assert QueryStats().duration_ms == 0.0

    def test_duration(self):
        stats = QueryStats(start_time=10.0, end_time=10.5)
        assert stats.duration_ms == 500.0

    def test_to_dict(self):
        d = QueryStats().to_dict()
        assert d["state"] == "PENDING"
        assert d["store_calls"] == 0
        assert d["error"] is None


class TestQueryContext:
    def test_unique_ids(self):
        assert QueryContext().query_id != QueryContext().query_id

    def test_lifecycle(self):
        context = QueryContext()
        context.start()
        assert context.stats.state == QueryState.RUNNING

        context.record_store_call()
        context.add_scanned_statements(3)
        context.record_discard()
        context.complete(rows_returned=2)

        assert context.stats.state == QueryState.COMPLETED
        assert context.stats.store_calls == 1
        assert context.stats.statements_scanned == 3
        assert context.stats.rows_discarded == 1
        assert context.stats.rows_returned == 2
        assert context.stats.end_time >= context.stats.start_time

    def test_fail(self):
        context = QueryContext()
        context.start()
        context.fail("boom")
        assert context.stats.state == QueryState.FAILED
        assert context.stats.error == "boom"


class TestExplainPlan:
    def make_plan(self, **kwargs):
        defaults = dict(
            query_type="SELECT",
            anchor={"shape": "direct_value", "property_id": "P31", "pattern": "?item prop:P31 item:Q5 ."},
            subject_variable="?item",
            target_value="Q5",
        )
        defaults.update(kwargs)
        return ExplainPlan(**defaults)

    def test_to_dict(self):
        d = self.make_plan(limit=5).to_dict()
        assert d["anchor"]["property_id"] == "P31"
        assert d["limit"] == 5
        assert d["joins"] == []

    def test_str(self):
        text = str(self.make_plan(
            ignored_patterns=["?x wdt:P1 ?y ."],
            limit=5,
        ))
        assert "Query Type: SELECT" in text
        assert "Anchor: direct_value on P31 (max 100 statements)" in text
        assert "Target Value: Q5" in text
        assert "?x wdt:P1 ?y ." in text
        assert "Limit: 5 (not applied)" in text
