"""Unit tests for weight condition evaluation."""

import pytest

from callflow_core.rules import UnknownWeightOperationError, WeightCondition, WeightEvaluator


def condition(operation: str, value=None, weight: float = 10, field: str = "Value") -> WeightCondition:
    return WeightCondition(field=field, operation=operation, value=value, weight=weight)


class TestEquality:
    """Tests for equals / notequals."""

    def test_equals_matches_string(self):
        """Test equals contributes the weight on a match."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("equals", "DONE"), "DONE") == 10
        assert evaluator.evaluate(condition("equals", "DONE"), "ERROR") == 0

    def test_equals_compares_as_strings(self):
        """Test numbers and booleans are compared by their stored form."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("equals", 5), 5) == 10
        assert evaluator.evaluate(condition("equals", "5"), 5.0) == 10
        assert evaluator.evaluate(condition("equals", "true"), True) == 10

    def test_equals_absent_value(self):
        """Test an absent raw value never equals a literal."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("equals", "x"), None) == 0
        assert evaluator.evaluate(condition("notequals", "x"), None) == 10

    def test_expected_overrides_condition_value(self):
        """Test a resolved template value replaces the literal."""
        evaluator = WeightEvaluator()

        result = evaluator.evaluate(condition("equals", "{{Other}}"), "abc", expected="abc")

        assert result == 10


class TestEmptiness:
    """Tests for isempty / isnull and their negations."""

    @pytest.mark.parametrize("raw", [None, "", []])
    def test_isempty(self, raw):
        """Test absent, empty string and empty list are empty."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("isempty"), raw) == 10
        assert evaluator.evaluate(condition("isnotempty"), raw) == 0

    def test_isnotempty(self):
        """Test populated values are not empty."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("isnotempty"), "x") == 10
        assert evaluator.evaluate(condition("isnotempty"), [1]) == 10
        assert evaluator.evaluate(condition("isnotempty"), 0) == 10

    def test_isnull(self):
        """Test only absent values are null."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("isnull"), None) == 10
        assert evaluator.evaluate(condition("isnull"), "") == 0
        assert evaluator.evaluate(condition("isnotnull"), "") == 10


class TestMobile:
    """Tests for ismobile / isnotmobile."""

    def test_mobile_prefix(self):
        """Test numbers are classified by prefix."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("ismobile"), "+61412345678") == 10
        assert evaluator.evaluate(condition("ismobile"), "+61298765432") == 0
        assert evaluator.evaluate(condition("isnotmobile"), "+61298765432") == 10

    def test_absent_number_is_not_mobile(self):
        """Test an absent number is treated as not mobile."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("ismobile"), None) == 0
        assert evaluator.evaluate(condition("isnotmobile"), None) == 10

    def test_configurable_prefix(self):
        """Test a different mobile prefix."""
        evaluator = WeightEvaluator(mobile_prefix="+447")

        assert evaluator.evaluate(condition("ismobile"), "+447700900123") == 10
        assert evaluator.evaluate(condition("ismobile"), "+61412345678") == 0


class TestOrdering:
    """Tests for lessthan / greaterthan."""

    def test_numeric_comparison(self):
        """Test numeric strings compare numerically."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("greaterthan", "9"), "10") == 10
        assert evaluator.evaluate(condition("lessthan", "10"), "9") == 10
        assert evaluator.evaluate(condition("lessthan", "2.5"), 2) == 10

    def test_lexicographic_comparison(self):
        """Test non-numeric values compare as strings."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("lessthan", "banana"), "apple") == 10
        assert evaluator.evaluate(condition("greaterthan", "banana"), "apple") == 0
        # "true" is never numeric, so this is a string comparison
        assert evaluator.evaluate(condition("greaterthan", "1"), "true") == 10

    def test_absent_raw_is_false(self):
        """Test absent values never compare."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("lessthan", "5"), None) == 0
        assert evaluator.evaluate(condition("greaterthan", "5"), None) == 0

    def test_equal_values(self):
        """Test strict comparisons on equal values."""
        evaluator = WeightEvaluator()

        assert evaluator.evaluate(condition("lessthan", "5"), "5") == 0
        assert evaluator.evaluate(condition("greaterthan", "5"), "5") == 0


class TestConfiguration:
    """Tests for condition configuration handling."""

    def test_unknown_operation(self):
        """Test an unsupported operation is a configuration error."""
        evaluator = WeightEvaluator()

        with pytest.raises(UnknownWeightOperationError):
            evaluator.evaluate(condition("contains", "x"), "xyz")

    def test_condition_fields_are_trimmed(self):
        """Test whitespace around field, operation and value is ignored."""
        trimmed = WeightCondition(field=" Customer ", operation=" equals ", value=" 42 ", weight=1)

        assert trimmed.field == "Customer"
        assert trimmed.operation == "equals"
        assert trimmed.value == "42"

    def test_holds_with_zero_weight(self):
        """Test a zero-weight condition can still hold."""
        evaluator = WeightEvaluator()
        zero = condition("isnull", weight=0)

        assert evaluator.holds(zero, None) is True
        assert evaluator.evaluate(zero, None) == 0
