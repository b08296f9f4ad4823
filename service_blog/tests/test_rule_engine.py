"""
Unit tests for RuleEngine.
"""

import pytest
from unittest.mock import MagicMock

from shared.errors import StoreError, ValidationFailure
from service_blog.app.validation.engine import RuleEngine, validate, password_violations
from service_blog.app.validation.rules import RuleSpec, ValidationRuleSet, parse_rules


class TestRuleParsing:
    """Test cases for the rule-spec parser."""

    def test_parse_pipe_and_params(self):
        """Test names, colon and comma separation."""
        rule_set = parse_rules({"pw": "required|min:8|max:255", "kind": "in:a,b,c"})

        assert rule_set.field_names() == ["pw", "kind"]
        assert rule_set.rules_for("pw") == (
            RuleSpec("required"), RuleSpec("min", ("8",)), RuleSpec("max", ("255",))
        )
        assert rule_set.rules_for("kind") == (RuleSpec("in", ("a", "b", "c")),)

    def test_regex_keeps_whole_pattern(self):
        """Test regex patterns may contain commas, colons and pipes."""
        rule_set = parse_rules({"code": "required|regex:/^(a|b){1,3}:x$/"})

        assert rule_set.rules_for("code")[1] == RuleSpec("regex", ("/^(a|b){1,3}:x$/",))

    def test_list_form(self):
        """Test rules given as a list of tokens."""
        rule_set = parse_rules({"x": ["required", "max:3"]})

        assert [r.name for r in rule_set.rules_for("x")] == ["required", "max"]

    def test_parsed_set_is_returned_unchanged(self):
        """Test parse_rules is idempotent over a parsed set."""
        rule_set = parse_rules({"x": "required"})

        assert parse_rules(rule_set) is rule_set
        assert isinstance(rule_set, ValidationRuleSet)


class TestRuleEngine:
    """Test cases for RuleEngine."""

    @pytest.fixture
    def rule_engine(self):
        """Create RuleEngine instance without a store."""
        return RuleEngine()

    def test_valid_input_has_no_errors(self, rule_engine):
        """Test a value satisfying every rule yields an empty result."""
        result = rule_engine.validate(
            {"email": "jane@blog.org", "name": "Jane_Doe-1"},
            {"email": "required|email|max:255", "name": "required|alpha_dash|min:3"},
        )

        assert result.valid
        assert result.errors == {}
        assert rule_engine.has_errors() is False

    def test_invalid_email_message(self, rule_engine):
        """Test required|email on a malformed address."""
        result = rule_engine.validate({"email": "not-an-email"}, {"email": "required|email"})

        assert result.errors == {"email": ["The email must be a valid email address."]}

    @pytest.mark.parametrize("address", ["alice@example.test", "bob@blog.example", "carol@site.invalid"])
    def test_email_is_syntactic(self, rule_engine, address):
        """Test well-formed addresses on special-use domains are accepted."""
        assert rule_engine.validate({"e": address}, {"e": "email"}).valid

    def test_min_length_single_error(self, rule_engine):
        """Test required|min:8 on a short value."""
        result = rule_engine.validate({"pw": "short"}, {"pw": "required|min:8"})

        assert result.errors == {"pw": ["The pw must be at least 8 characters."]}

    def test_required_zero_is_present(self, rule_engine):
        """Test the literal "0" satisfies required."""
        assert rule_engine.validate({"x": "0"}, {"x": "required"}).valid

    @pytest.mark.parametrize("value", [None, ""])
    def test_required_missing(self, rule_engine, value):
        """Test None and empty string fail required."""
        result = rule_engine.validate({"x": value}, {"x": "required"})

        assert result.errors == {"x": ["The x field is required."]}

    def test_absent_field_treated_as_none(self, rule_engine):
        """Test fields missing from input only fail an explicit required."""
        result = rule_engine.validate({}, {"a": "email|min:3", "b": "required"})

        assert result.errors == {"b": ["The b field is required."]}

    def test_first_failure_stops_field(self, rule_engine):
        """Test rules after the first failing rule are not evaluated."""
        engine = RuleEngine()
        engine._checkers["max"] = MagicMock(return_value=[])

        result = engine.validate({"x": "ab"}, {"x": "min:5|max:1"})

        assert result.errors == {"x": ["The x must be at least 5 characters."]}
        engine._checkers["max"].assert_not_called()

    def test_fields_are_independent(self, rule_engine):
        """Test a failure in one field does not stop other fields."""
        result = rule_engine.validate(
            {"a": "", "b": "x"},
            {"a": "required", "b": "min:3"},
        )

        assert set(result.errors) == {"a", "b"}

    def test_empty_value_skips_format_rules(self, rule_engine):
        """Test optional empty fields pass every non-required rule."""
        rules = {"x": "email|numeric|integer|alpha|alpha_num|alpha_dash|url|in:a|password|confirmed|regex:/^z$/"}

        assert rule_engine.validate({"x": ""}, rules).valid

    def test_unknown_rule_is_noop(self, rule_engine):
        """Test unknown rule names pass silently."""
        assert rule_engine.validate({"x": "abc"}, {"x": "frobnicate:1,2|min:1"}).valid

    @pytest.mark.parametrize("rule,good,bad,message", [
        ("numeric", "-12.5e3", "12abc", "The x must be a number."),
        ("integer", "-42", "4.2", "The x must be an integer."),
        ("alpha", "abc", "abc1", "The x may only contain letters."),
        ("alpha_num", "abc1", "abc_1", "The x may only contain letters and numbers."),
        ("alpha_dash", "a-b_c1", "a b", "The x may only contain letters, numbers, dashes, and underscores."),
        ("url", "https://blog.org/a?b=1", "blog.org", "The x must be a valid URL."),
        ("in:red,green", "green", "blue", "The selected x is invalid."),
        ("regex:/^[a-z]+$/i", "AbC", "ab1", "The x format is invalid."),
        ("max:3", "abc", "abcd", "The x may not be greater than 3 characters."),
    ])
    def test_format_rules(self, rule_engine, rule, good, bad, message):
        """Test each format rule accepts and rejects."""
        assert rule_engine.validate({"x": good}, {"x": rule}).valid
        assert rule_engine.validate({"x": bad}, {"x": rule}).errors == {"x": [message]}

    def test_max_defaults_to_255(self, rule_engine):
        """Test max without a parameter."""
        assert rule_engine.validate({"x": "a" * 255}, {"x": "max"}).valid
        assert not rule_engine.validate({"x": "a" * 256}, {"x": "max"}).valid

    def test_invalid_regex_is_a_failure(self, rule_engine):
        """Test a pattern that does not compile rejects the value."""
        result = rule_engine.validate({"x": "abc"}, {"x": "regex:/(/"})

        assert result.errors == {"x": ["The x format is invalid."]}

    def test_confirmed(self, rule_engine):
        """Test confirmation against the sibling field."""
        rules = {"password": "required|confirmed"}

        assert rule_engine.validate({"password": "a", "password_confirmation": "a"}, rules).valid
        result = rule_engine.validate({"password": "a", "password_confirmation": "b"}, rules)
        assert result.errors == {"password": ["The password confirmation does not match."]}
        assert not rule_engine.validate({"password": "a"}, rules).valid

    def test_password_reports_all_violations(self, rule_engine):
        """Test the password rule reports every unmet requirement."""
        result = rule_engine.validate({"pw": "abc"}, {"pw": "required|password|max:2"})

        assert result.errors["pw"] == [
            "Password must be at least 8 characters long.",
            "Password must contain at least one uppercase letter.",
            "Password must contain at least one number.",
            "Password must contain at least one special character.",
        ]

    def test_strong_password(self):
        """Test a compliant password."""
        assert password_violations("Sup3r$ecret") == []

    def test_results_do_not_accumulate(self, rule_engine):
        """Test each call builds a fresh result."""
        first = rule_engine.validate({"x": ""}, {"x": "required"})
        second = rule_engine.validate({"x": "ok"}, {"x": "required"})

        assert first.errors == {"x": ["The x field is required."]}
        assert second.errors == {}
        assert rule_engine.get_errors() == {}

    def test_accessors(self, rule_engine):
        """Test get_errors/get_first_error/has_errors."""
        rule_engine.validate({"a": "", "b": ""}, {"a": "required", "b": "required"})

        assert rule_engine.has_errors()
        assert rule_engine.get_first_error() == "The a field is required."
        assert rule_engine.get_first_error("b") == "The b field is required."
        assert rule_engine.get_first_error("c") is None

    def test_validate_or_raise(self, rule_engine):
        """Test ValidationFailure carries the error map."""
        with pytest.raises(ValidationFailure) as exc_info:
            rule_engine.validate_or_raise({}, {"x": "required"})

        assert exc_info.value.errors == {"x": ["The x field is required."]}
        assert exc_info.value.status_code == 422

    def test_helper(self):
        """Test the one-shot validate helper."""
        assert validate({"x": "1"}, {"x": "integer"}) == {"valid": True, "errors": {}}
        assert validate({"x": "a"}, {"x": "integer"})["valid"] is False


class TestLookupRules:
    """Test cases for unique/exists against the store."""

    @pytest.fixture
    def rule_engine(self, builder, user_ids):
        """RuleEngine backed by the seeded store."""
        return RuleEngine(builder)

    def test_unique(self, rule_engine):
        """Test unique rejects taken values."""
        rules = {"username": "unique:users,username"}

        assert rule_engine.validate({"username": "fresh_name"}, rules).valid
        assert rule_engine.validate({"username": "admin_ada"}, rules).errors == {
            "username": ["The username has already been taken."]
        }

    def test_exists_defaults_column_to_field(self, rule_engine):
        """Test exists with the column taken from the field name."""
        rules = {"email": "exists:users"}

        assert rule_engine.validate({"email": "ada@blog.org"}, rules).valid
        assert rule_engine.validate({"email": "nobody@blog.org"}, rules).errors == {
            "email": ["The selected email is invalid."]
        }

    def test_store_failure_fails_open_to_false(self):
        """Test store errors make the lookup False without raising."""
        store = MagicMock()
        store.count.side_effect = StoreError("execute", "boom")
        engine = RuleEngine(store)

        assert engine.validate({"u": "x"}, {"u": "unique:users"}).valid
        assert not engine.validate({"u": "x"}, {"u": "exists:users"}).valid

    def test_lookup_identifiers_are_sanitized(self, builder, user_ids):
        """Test table/column parameters cannot smuggle statement text."""
        engine = RuleEngine(builder)

        result = engine.validate({"username": "admin_ada"}, {"username": "unique:users;DROP TABLE x,username"})

        # "users;DROP TABLE x" sanitizes to "usersDROPTABLEx", which does not exist.
        assert result.valid
        assert builder.count("users") == len(user_ids)
