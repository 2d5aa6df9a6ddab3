"""
Tests for strata.validation — per-column value rules.

Run with: pytest tests/test_validation.py -v
"""
import pytest

from strata.errors import ValidationError
from strata.model import ColumnDefinition, ModelDefinition
from strata.validation import check_value, validate_row

pytestmark = [pytest.mark.unit]


def _col(**rules):
    return ColumnDefinition(validate=rules)


class TestStringRules:

    @pytest.mark.parametrize("rule,good,bad", [
        ('isEmail', 'a@b.io', 'a@b'),
        ('isUrl', 'https://x.io/p', 'ftp://x.io'),
        ('isIP', '10.0.0.1', '10.0.1'),
        ('isAlpha', 'abc', 'ab1'),
        ('isAlphanumeric', 'ab1', 'ab-1'),
    ])
    def test_pattern(self, rule, good, bad):
        col = _col(**{rule: True})
        assert check_value(good, col) == []
        assert len(check_value(bad, col)) == 1

    def test_pattern_needs_string(self):
        assert check_value(5, _col(is_email=True)) == ['Must be a valid email']

    def test_custom_message(self):
        col = _col(isAlpha={'msg': 'letters please'})
        assert check_value('a1', col) == ['letters please']

    def test_disabled_rule(self):
        assert check_value('a1', _col(isAlpha=False)) == []


class TestNumericRules:

    def test_numeric(self):
        col = _col(isNumeric=True)
        assert check_value('3.5', col) == []
        assert check_value('abc', col) == ['Must be a number']
        assert check_value('nan', col) == ['Must be a number']

    def test_int_and_float(self):
        assert check_value('4', _col(isInt=True)) == []
        assert check_value(3.5, _col(isInt=True)) == ['Must be an integer']
        assert check_value(3.5, _col(isFloat=True)) == []
        assert check_value(3, _col(isFloat=True)) == ['Must be a float']

    def test_bounds(self):
        col = _col(min=0, max={'args': 10, 'msg': 'too big'})
        assert check_value(10, col) == []
        assert check_value(-1, col) == ['Must be at least 0']
        assert check_value(11, col) == ['too big']


class TestLengthAndMembership:

    def test_len(self):
        col = _col(len=[2, 3])
        assert check_value('ab', col) == []
        assert check_value('abcd', col) == ['Length must be between 2 and 3']
        assert check_value(12345, col) == ['Length must be between 2 and 3']

    def test_len_without_bounds_passes(self):
        assert check_value('x' * 100, _col(len=True)) == []

    def test_is_in_not_in(self):
        assert check_value('b', _col(isIn=['a', 'b'])) == []
        assert check_value('c', _col(isIn={'args': ['a', 'b']})) == ['Value is not in allowed list']
        assert check_value('x', _col(notIn=['x'])) == ['Value is not allowed']


class TestNulls:

    def test_nullable_skips_rules(self):
        assert check_value(None, _col(isEmail=True)) == []

    def test_required(self):
        col = ColumnDefinition(allow_null=False, validate={'isEmail': True})
        assert check_value(None, col) == ['Value cannot be null']

    def test_primary_key_may_be_null(self):
        assert check_value(None, ColumnDefinition(allow_null=False, primary_key=True)) == []


class TestValidateRow:

    def test_unknown_columns_ignored(self):
        validate_row('User', {'email': _col(isEmail=True)}, {'email': 'a@b.io', 'extra': 1})

    def test_message_lists_fields(self):
        columns = {'email': _col(isEmail=True), 'age': _col(min=0)}
        with pytest.raises(ValidationError) as exc:
            validate_row('User', columns, {'email': 'x', 'age': -5})
        assert str(exc.value) == ("Validation failed for User: "
                                  "Field 'email': Must be a valid email; "
                                  "Field 'age': Must be at least 0")
        assert exc.value.kind == 'validation'

    def test_rules_from_literal(self):
        definition = ModelDefinition.from_dict({'name': 'User', 'columns': {
            'email': {'type': 'STRING', 'validate': {'isEmail': True}}}})
        assert definition.columns['email'].validate == {'isEmail': True}
