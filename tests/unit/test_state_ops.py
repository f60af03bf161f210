"""Unit tests for flow-invoked state operations."""

import pytest

from callflow_core.inference import load_state, update_state
from callflow_core.inference.state_ops import increment_value, parse_indexed_pairs


class TestIndexedPairs:
    """Tests for parse_indexed_pairs."""

    def test_contiguous_pairs(self):
        """Test parsing stops at the first missing index."""
        pairs = parse_indexed_pairs({
            "key1": "A", "value1": "x",
            "key2": "B", "value2": "",
            "key3": "C", "value3": "null",
            "key5": "E", "value5": "ignored",
        })

        assert pairs == [("A", "x"), ("B", None), ("C", None)]

    def test_missing_value_deletes(self):
        assert parse_indexed_pairs({"key1": "A"}) == [("A", None)]

    def test_empty_key_skipped(self):
        """Test an empty key is skipped without ending the scan."""
        pairs = parse_indexed_pairs({"key1": "", "value1": "x", "key2": "B", "value2": "y"})

        assert pairs == [("B", "y")]

    def test_values_stringified(self):
        assert parse_indexed_pairs({"key1": "Count", "value1": 3}) == [("Count", "3")]


class TestIncrement:
    """Tests for increment_value."""

    @pytest.mark.parametrize("existing,expected", [
        (None, "1"),
        ("2", "3"),
        ("2.5", "3.5"),
        ("abc", "1"),
        ("true", "1"),
    ])
    def test_increment(self, existing, expected):
        assert increment_value(existing) == expected


class TestStateOperations:
    """Tests for load_state / update_state."""

    @pytest.mark.asyncio
    async def test_update_and_load(self, store, session_id):
        """Test updates persist and return the string projection."""
        await store.save_diff(session_id, {"Customer": {"AccountNumber": "1001"}, "Old": "x"})

        result = await update_state(store, session_id, {
            "key1": "PinAttempts", "value1": "increment",
            "key2": "PostCode", "value2": "2000",
            "key3": "Old", "value3": "null",
        })

        assert result == {"PinAttempts": "1", "PostCode": "2000"}
        assert await load_state(store, session_id) == result
        assert (await store.load(session_id))["Customer"] == {"AccountNumber": "1001"}

    @pytest.mark.asyncio
    async def test_repeated_increment(self, store, session_id):
        params = {"key1": "PinAttempts", "value1": "increment"}

        await update_state(store, session_id, params)
        result = await update_state(store, session_id, params)

        assert result["PinAttempts"] == "2"

    @pytest.mark.asyncio
    async def test_no_pairs(self, store, session_id):
        """Test an update without pairs writes nothing."""
        assert await update_state(store, session_id, {}) == {}
        assert store.batches == []
