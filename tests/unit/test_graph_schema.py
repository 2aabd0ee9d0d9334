"""
Unit tests for graph schema definitions.

Validates the schema statements are idempotent index creation and that the
row projections line up with the Pattern model.
"""

from reasoning_bank.graph.schema import LINK_RETURN, PATTERN_FIELDS, PATTERN_RETURN, SCHEMA_STATEMENTS, USAGE_LINK
from reasoning_bank.models.pattern import Pattern


class TestGraphSchema:
    """Test graph schema definitions."""

    def test_schema_statements_not_empty(self):
        assert len(SCHEMA_STATEMENTS) > 0

    def test_all_statements_are_index_creation(self):
        """All schema statements should be idempotent index creation."""
        for stmt in SCHEMA_STATEMENTS:
            assert "CREATE INDEX IF NOT EXISTS" in stmt

    def test_pattern_id_index_exists(self):
        """Pattern(id) index is required for O(1) neuron lookup in the CAS loop."""
        assert any("(p:Pattern) ON (p.id)" in stmt for stmt in SCHEMA_STATEMENTS)

    def test_spike_timestamp_index_exists(self):
        """SpikeEvent(timestamp) index backs the windowed rate queries."""
        assert any("(s:SpikeEvent) ON (s.timestamp)" in stmt for stmt in SCHEMA_STATEMENTS)


class TestProjections:
    def test_pattern_fields_are_model_fields(self):
        assert set(PATTERN_FIELDS) <= set(Pattern.model_fields)
        assert PATTERN_FIELDS[0] == "id"

    def test_pattern_return_order(self):
        assert PATTERN_RETURN.split(", ") == [f"p.{name}" for name in PATTERN_FIELDS]

    def test_link_return_has_eight_columns(self):
        assert len(LINK_RETURN.split(", ")) == 8

    def test_relationship_type_is_uppercase(self):
        assert USAGE_LINK == USAGE_LINK.upper()
