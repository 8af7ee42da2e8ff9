#!/usr/bin/env python3
"""
Tests for the dialect parsers.
"""

import pytest

from querybridge import InterleavedRuleGroup, Rule, RuleGroup, parse_query
from querybridge.exceptions import (
    InvalidOptionError, QueryParseError, UnknownFieldError, UnrepresentableOperatorError,
)


def single(rule):
    return RuleGroup("and", [rule])


class TestSQLParser:
    """Test parsing SQL WHERE clauses."""

    def test_nested_groups(self):
        """and / or with parentheses."""
        tree = parse_query("a = 1 AND (b = 2 OR c = 3)", "sql")
        assert tree == RuleGroup("and", [
            Rule("a", "=", 1),
            RuleGroup("or", [Rule("b", "=", 2), Rule("c", "=", 3)]),
        ])

    def test_formatter_root_parentheses(self):
        """The outer parentheses the formatter adds are not a group."""
        assert parse_query("(a = 'x' and b = 'y')", "sql") == RuleGroup("and", [
            Rule("a", "=", "x"), Rule("b", "=", "y"),
        ])

    def test_precedence(self):
        """AND binds tighter than OR."""
        tree = parse_query("a = 1 and b = 2 or c = 3", "sql")
        assert tree == RuleGroup("or", [
            RuleGroup("and", [Rule("a", "=", 1), Rule("b", "=", 2)]),
            Rule("c", "=", 3),
        ])

    def test_independent_combinators(self):
        """Interleaved trees keep the written order."""
        tree = parse_query("a = 1 and b = 2 or c = 3", "sql", independent_combinators=True)
        assert tree == InterleavedRuleGroup([
            Rule("a", "=", 1), "and", Rule("b", "=", 2), "or", Rule("c", "=", 3),
        ])

    def test_like_patterns(self):
        """LIKE anchors decide the text operator."""
        assert parse_query("name LIKE 'J%'", "sql") == single(Rule("name", "beginsWith", "J"))
        assert parse_query("name like '%son'", "sql") == single(Rule("name", "endsWith", "son"))
        assert parse_query("name like '%oh%'", "sql") == single(Rule("name", "contains", "oh"))
        assert parse_query("name like 'exact'", "sql") == single(Rule("name", "=", "exact"))
        assert parse_query("name NOT LIKE '%x%'", "sql") == single(Rule("name", "doesNotContain", "x"))

    def test_in_lists(self):
        """IN lists are joined unless lists_as_arrays is set."""
        assert parse_query("status IN ('a', 'b')", "sql") == single(Rule("status", "in", "a,b"))
        assert parse_query("status not in ('a', 'b')", "sql", lists_as_arrays=True) == single(
            Rule("status", "notIn", ["a", "b"])
        )

    def test_commas_in_list_items(self):
        """Commas inside items are escaped in the joined value."""
        tree = parse_query("city in ('Paris, TX', 'Rome')", "sql")
        assert tree == single(Rule("city", "in", "Paris\\, TX,Rome"))

    def test_between(self):
        """BETWEEN and NOT BETWEEN."""
        assert parse_query("age BETWEEN 18 AND 65", "sql") == single(Rule("age", "between", "18,65"))
        assert parse_query("age not between 1 and 5", "sql", lists_as_arrays=True) == single(
            Rule("age", "notBetween", [1, 5])
        )

    def test_between_inside_and(self):
        """The AND of BETWEEN is not a connective."""
        tree = parse_query("age between 1 and 5 and name = 'x'", "sql")
        assert tree == RuleGroup("and", [Rule("age", "between", "1,5"), Rule("name", "=", "x")])

    def test_null_checks(self):
        """IS [NOT] NULL."""
        assert parse_query("x IS NULL", "sql") == single(Rule("x", "null", None))
        assert parse_query("x is not null", "sql") == single(Rule("x", "notNull", None))

    def test_not(self):
        """NOT folds into rules and negates groups."""
        assert parse_query("NOT a = 1", "sql") == single(Rule("a", "!=", 1))
        assert parse_query("NOT (a = 1 OR b = 2)", "sql") == RuleGroup(
            "or", [Rule("a", "=", 1), Rule("b", "=", 2)], negated=True
        )

    def test_operand_order(self):
        """A literal on the left is moved to the right."""
        assert parse_query("5 < age", "sql") == single(Rule("age", ">", 5))

    def test_field_comparison(self):
        """Two identifiers make a field-sourced rule."""
        assert parse_query("a <> b", "sql") == single(Rule("a", "!=", "b", value_source="field"))

    def test_quoted_identifiers(self):
        """Double quotes, backticks and brackets."""
        assert parse_query('"first name" = \'x\'', "sql") == single(Rule("first name", "=", "x"))
        assert parse_query("`order` = 'x'", "sql") == single(Rule("order", "=", "x"))
        assert parse_query("[my col] = 'x'", "sql") == single(Rule("my col", "=", "x"))

    def test_literals(self):
        """Strings, booleans and numbers."""
        assert parse_query("a = 'O''Brien'", "sql") == single(Rule("a", "=", "O'Brien"))
        assert parse_query("a = TRUE", "sql") == single(Rule("a", "=", True))
        assert parse_query("a = -2.5", "sql") == single(Rule("a", "=", -2.5))

    def test_parse_numbers(self):
        """Quoted numbers convert only when requested."""
        assert parse_query("a = '42'", "sql") == single(Rule("a", "=", "42"))
        assert parse_query("a = '42'", "sql", parse_numbers=True) == single(Rule("a", "=", 42))

    def test_text_values_not_converted(self):
        """LIKE values stay strings."""
        tree = parse_query("a like '12%'", "sql", parse_numbers=True)
        assert tree == single(Rule("a", "beginsWith", "12"))

    def test_keywords_are_case_insensitive(self):
        """Keywords in any case; identifiers containing keywords are fine."""
        tree = parse_query("notes Is Not Null anD android = 'x'", "sql")
        assert tree == RuleGroup("and", [Rule("notes", "notNull", None), Rule("android", "=", "x")])

    def test_empty_input(self):
        """Blank input is an empty group."""
        assert parse_query("   ", "sql") == RuleGroup("and", [])

    def test_like_against_field(self):
        """LIKE with a field pattern has no rule form."""
        with pytest.raises(UnrepresentableOperatorError):
            parse_query("a like b", "sql")

    def test_literal_comparison(self):
        """Two literals cannot form a rule."""
        with pytest.raises(QueryParseError):
            parse_query("1 = 2", "sql")

    def test_always_true_fallback(self):
        """A lone equal-literal comparison is an empty query."""
        assert parse_query("(1 = 1)", "sql") == RuleGroup("and", [])
        assert parse_query("1 = 1", "sql") == RuleGroup("and", [])
        assert parse_query("'x' = 'x'", "sql") == RuleGroup("and", [])

    def test_constant_inside_expression(self):
        """Constant comparisons cannot be combined or negated."""
        with pytest.raises(QueryParseError):
            parse_query("a = 1 and 1 = 1", "sql")
        with pytest.raises(QueryParseError):
            parse_query("NOT (1 = 1)", "sql")
        with pytest.raises(QueryParseError):
            parse_query("1 = '1'", "sql")

    def test_syntax_error_position(self):
        """Errors report line and column."""
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("a = 1 # b", "sql")
        assert exc_info.value.line == 1
        assert exc_info.value.column == 7
        assert "line 1, column 7" in str(exc_info.value)

    def test_incomplete_input(self):
        """Truncated input is a parse error."""
        with pytest.raises(QueryParseError):
            parse_query("a = ", "sql")
        with pytest.raises(QueryParseError):
            parse_query("(a = 1", "sql")

    def test_incomplete_input_message(self):
        """Input ending mid-expression reports the end of input."""
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("(a = 1", "sql")
        assert "Unexpected end of sql input" in str(exc_info.value)
        assert exc_info.value.position == 6
        with pytest.raises(QueryParseError) as exc_info:
            parse_query("a == 1 &&", "cel")
        assert "Unexpected end of cel input" in str(exc_info.value)

    def test_non_string_input(self):
        """Text dialects need strings."""
        with pytest.raises(QueryParseError):
            parse_query({"a": 1}, "sql")

    def test_max_depth(self):
        """Nesting beyond max_depth is rejected."""
        source = "a = 1 AND (b = 2 OR (c = 3 AND d = 4))"
        assert parse_query(source, "sql", max_depth=3)
        with pytest.raises(QueryParseError) as exc_info:
            parse_query(source, "sql", max_depth=2)
        assert "maximum depth of 2" in str(exc_info.value)

    def test_fields(self):
        """Unknown fields are rejected when fields are given."""
        fields = {"a": "A", "b": "B"}
        assert parse_query("a = 1 and b = a", "sql", fields=fields)
        with pytest.raises(UnknownFieldError) as exc_info:
            parse_query("a = 1 and z = 2", "sql", fields=fields)
        assert exc_info.value.field == "z"
        with pytest.raises(UnknownFieldError):
            parse_query("a = z", "sql", fields=fields)

    def test_unknown_dialect(self):
        """Only the supported dialects parse."""
        with pytest.raises(InvalidOptionError):
            parse_query("a = 1", "xpath")


class TestCELParser:
    """Test parsing CEL expressions."""

    def test_comparisons(self):
        """&& with literals of each kind."""
        tree = parse_query('age >= 18 && status == "active" && flag == true', "cel")
        assert tree == RuleGroup("and", [
            Rule("age", ">=", 18), Rule("status", "=", "active"), Rule("flag", "=", True),
        ])

    def test_methods(self):
        """Text methods map to text operators."""
        assert parse_query('name.startsWith("J")', "cel") == single(Rule("name", "beginsWith", "J"))
        assert parse_query("name.endsWith('son')", "cel") == single(Rule("name", "endsWith", "son"))
        assert parse_query('!name.contains("x")', "cel") == single(Rule("name", "doesNotContain", "x"))

    def test_dotted_receiver(self):
        """The receiver may itself be a dotted path."""
        tree = parse_query('user.name.contains("x")', "cel")
        assert tree == single(Rule("user.name", "contains", "x"))

    def test_membership(self):
        """in lists and their negation."""
        assert parse_query('status in ["a", "b"]', "cel") == single(Rule("status", "in", "a,b"))
        assert parse_query('!(status in ["a"])', "cel") == single(Rule("status", "notIn", "a"))

    def test_range_recovery(self):
        """A parenthesized pair of bounds is a range."""
        assert parse_query("(age >= 18 && age <= 65)", "cel") == single(Rule("age", "between", "18,65"))
        assert parse_query("x == 1 && (age < 1 || age > 5)", "cel") == RuleGroup("and", [
            Rule("x", "=", 1), Rule("age", "notBetween", "1,5"),
        ])

    def test_unparenthesized_bounds(self):
        """Bounds at the root stay separate rules."""
        assert parse_query("age >= 18 && age <= 65", "cel") == RuleGroup("and", [
            Rule("age", ">=", 18), Rule("age", "<=", 65),
        ])

    def test_null_checks(self):
        """Comparison with null is a null check."""
        assert parse_query("x == null", "cel") == single(Rule("x", "null", None))
        assert parse_query("x != null", "cel") == single(Rule("x", "notNull", None))

    def test_string_escapes(self):
        """Backslash escapes are decoded."""
        assert parse_query('a == "say \\"hi\\""', "cel") == single(Rule("a", "=", 'say "hi"'))

    def test_precedence(self):
        """&& binds tighter than ||."""
        assert parse_query("a == 1 || b == 2 && c == 3", "cel") == RuleGroup("or", [
            Rule("a", "=", 1),
            RuleGroup("and", [Rule("b", "=", 2), Rule("c", "=", 3)]),
        ])

    def test_negated_root(self):
        """A negated group at the root becomes the negated root."""
        assert parse_query('!(a == 1 && b == 2)', "cel") == RuleGroup(
            "and", [Rule("a", "=", 1), Rule("b", "=", 2)], negated=True
        )

    def test_unrepresentable_method(self):
        """Methods without a canonical operator fail."""
        with pytest.raises(UnrepresentableOperatorError):
            parse_query('name.matches("^J")', "cel")

    def test_call_without_receiver(self):
        """Free functions are not rules."""
        with pytest.raises(QueryParseError):
            parse_query('contains("x")', "cel")

    def test_membership_needs_field(self):
        """The left side of in must be a field."""
        with pytest.raises(QueryParseError):
            parse_query('"a" in ["a"]', "cel")

    def test_always_true_fallback(self):
        """The empty-query fallback parses back to an empty group."""
        assert parse_query("1 == 1", "cel") == RuleGroup("and", [])
        with pytest.raises(QueryParseError):
            parse_query("!(1 == 1)", "cel")


class TestSpELParser:
    """Test parsing SpEL expressions."""

    def test_word_operators(self):
        """Textual comparison and logical operators."""
        tree = parse_query("age ge 18 and status eq 'active'", "spel")
        assert tree == RuleGroup("and", [Rule("age", ">=", 18), Rule("status", "=", "active")])

    def test_symbolic_operators(self):
        """Symbolic forms are accepted too."""
        tree = parse_query("a > 1 || b <= 2", "spel")
        assert tree == RuleGroup("or", [Rule("a", ">", 1), Rule("b", "<=", 2)])

    def test_inline_list(self):
        """{...}.contains(field) is membership."""
        assert parse_query("{'a', 'b'}.contains(status)", "spel") == single(Rule("status", "in", "a,b"))
        assert parse_query("!{'a'}.contains(status)", "spel") == single(Rule("status", "notIn", "a"))

    def test_methods(self):
        """Text methods."""
        assert parse_query("name.endsWith('son')", "spel") == single(Rule("name", "endsWith", "son"))

    def test_quotes(self):
        """Doubled quotes inside strings."""
        assert parse_query("a == 'It''s'", "spel") == single(Rule("a", "=", "It's"))

    def test_not_keyword(self):
        """not negates a group."""
        assert parse_query("not (a == 1 or b == 2)", "spel") == RuleGroup(
            "or", [Rule("a", "=", 1), Rule("b", "=", 2)], negated=True
        )

    def test_range_recovery(self):
        """Parenthesized bounds are a range."""
        assert parse_query("(age >= 18 and age <= 65)", "spel") == single(Rule("age", "between", "18,65"))

    def test_null(self):
        """Comparison with null is a null check."""
        assert parse_query("x == null", "spel") == single(Rule("x", "null", None))

    def test_matches(self):
        """Anchored literal patterns become text operators."""
        assert parse_query("name matches '^J'", "spel") == single(Rule("name", "beginsWith", "J"))
        assert parse_query("name matches 'son$'", "spel") == single(Rule("name", "endsWith", "son"))
        assert parse_query("not name matches 'a\\.b'", "spel") == single(
            Rule("name", "doesNotContain", "a.b"))

    def test_matches_real_regex(self):
        """Patterns using regex syntax have no rule form."""
        with pytest.raises(UnrepresentableOperatorError):
            parse_query("name matches '^J.*n$'", "spel")

    def test_unknown_list_method(self):
        """Only contains() is membership."""
        with pytest.raises(UnrepresentableOperatorError):
            parse_query("{'a'}.size(status)", "spel")

    def test_always_true_fallback(self):
        """The empty-query fallback parses back to an empty group."""
        assert parse_query("1 == 1", "spel") == RuleGroup("and", [])
        with pytest.raises(QueryParseError):
            parse_query("1 == 1 or a == 2", "spel")


class TestMongoDBParser:
    """Test parsing MongoDB query documents."""

    def test_implicit_equality(self):
        """Plain values are equality; several keys are and."""
        assert parse_query({"name": "John"}, "mongodb") == single(Rule("name", "=", "John"))
        assert parse_query({"a": 1, "b": 2}, "mongodb") == RuleGroup("and", [
            Rule("a", "=", 1), Rule("b", "=", 2),
        ])

    def test_null(self):
        """None and $exists are null checks."""
        assert parse_query({"a": None}, "mongodb") == single(Rule("a", "null", None))
        assert parse_query({"a": {"$ne": None}}, "mongodb") == single(Rule("a", "notNull", None))
        assert parse_query({"a": {"$exists": True}}, "mongodb") == single(Rule("a", "notNull", None))
        assert parse_query({"a": {"$exists": False}}, "mongodb") == single(Rule("a", "null", None))

    def test_comparison_operators(self):
        """Several operators on one field are and."""
        assert parse_query({"age": {"$gt": 18, "$lt": 65}}, "mongodb") == RuleGroup("and", [
            Rule("age", ">", 18), Rule("age", "<", 65),
        ])

    def test_between(self):
        """$gte with $lte is a range."""
        assert parse_query({"age": {"$gte": 18, "$lte": 65}}, "mongodb") == single(
            Rule("age", "between", "18,65")
        )

    def test_not_between(self):
        """An $or of outer bounds is notBetween."""
        tree = parse_query({"$and": [{"$or": [{"age": {"$lt": 1}}, {"age": {"$gt": 5}}]}]}, "mongodb")
        assert tree == single(Rule("age", "notBetween", "1,5"))

    def test_membership(self):
        """$in / $nin."""
        assert parse_query({"s": {"$in": ["a", "b"]}}, "mongodb") == single(Rule("s", "in", "a,b"))
        assert parse_query({"s": {"$nin": ["a"]}}, "mongodb", lists_as_arrays=True) == single(
            Rule("s", "notIn", ["a"])
        )

    def test_regex(self):
        """Anchored literal patterns map to text operators."""
        assert parse_query({"n": {"$regex": "^J"}}, "mongodb") == single(Rule("n", "beginsWith", "J"))
        assert parse_query({"n": {"$regex": "son$"}}, "mongodb") == single(Rule("n", "endsWith", "son"))
        assert parse_query({"n": {"$regex": "1\\.5"}}, "mongodb") == single(Rule("n", "contains", "1.5"))
        assert parse_query({"n": {"$regex": "^x$"}}, "mongodb") == single(Rule("n", "=", "x"))
        assert parse_query({"n": {"$not": {"$regex": "x"}}}, "mongodb") == single(
            Rule("n", "doesNotContain", "x")
        )

    def test_real_regex(self):
        """Patterns with regex syntax have no rule form."""
        with pytest.raises(UnrepresentableOperatorError):
            parse_query({"n": {"$regex": "a.*b"}}, "mongodb")

    def test_logical_operators(self):
        """$or, $and and $nor."""
        assert parse_query({"$or": [{"a": 1}, {"b": 2}]}, "mongodb") == RuleGroup("or", [
            Rule("a", "=", 1), Rule("b", "=", 2),
        ])
        assert parse_query({"$nor": [{"a": 1}, {"b": 2}]}, "mongodb") == RuleGroup(
            "or", [Rule("a", "=", 1), Rule("b", "=", 2)], negated=True
        )
        assert parse_query({"$nor": [{"$and": [{"a": 1}, {"b": 2}]}]}, "mongodb") == RuleGroup(
            "and", [Rule("a", "=", 1), Rule("b", "=", 2)], negated=True
        )

    def test_expr(self):
        """$expr compares fields."""
        tree = parse_query({"$expr": {"$gt": ["$a", "$b"]}}, "mongodb")
        assert tree == single(Rule("a", ">", "b", value_source="field"))

    def test_json_text(self):
        """JSON text is accepted."""
        assert parse_query('{"a": {"$lte": 3}}', "mongodb") == single(Rule("a", "<=", 3))

    def test_empty(self):
        """Empty documents and the formatter fallback are empty groups."""
        assert parse_query({}, "mongodb") == RuleGroup("and", [])
        assert parse_query({"$and": [{"$expr": True}]}, "mongodb") == RuleGroup("and", [])

    def test_invalid_json(self):
        """Malformed JSON reports its position."""
        with pytest.raises(QueryParseError) as exc_info:
            parse_query('{"a": ', "mongodb")
        assert exc_info.value.line == 1

    def test_not_a_document(self):
        """The top level must be an object."""
        with pytest.raises(QueryParseError):
            parse_query([{"a": 1}], "mongodb")

    def test_unrepresentable(self):
        """Unknown operators fail."""
        with pytest.raises(UnrepresentableOperatorError):
            parse_query({"$where": "this.a > 1"}, "mongodb")
        with pytest.raises(UnrepresentableOperatorError):
            parse_query({"tags": {"$size": 2}}, "mongodb")

    def test_max_depth(self):
        """Depth counts nested logical groups."""
        query = {"$and": [{"a": 1}, {"$or": [{"b": 2}, {"c": 3}]}]}
        assert parse_query(query, "mongodb", max_depth=2)
        with pytest.raises(QueryParseError):
            parse_query(query, "mongodb", max_depth=1)


class TestJsonLogicParser:
    """Test parsing JsonLogic rules."""

    def test_comparisons(self):
        """and of comparisons."""
        logic = {"and": [{"==": [{"var": "a"}, 1]}, {">": [{"var": "b"}, 2]}]}
        assert parse_query(logic, "jsonlogic") == RuleGroup("and", [
            Rule("a", "=", 1), Rule("b", ">", 2),
        ])

    def test_operand_order(self):
        """A literal first flips the comparison."""
        assert parse_query({">": [5, {"var": "a"}]}, "jsonlogic") == single(Rule("a", "<", 5))

    def test_between(self):
        """Three-argument <= is a range."""
        assert parse_query({"<=": [1, {"var": "x"}, 5]}, "jsonlogic") == single(
            Rule("x", "between", "1,5")
        )
        with pytest.raises(UnrepresentableOperatorError):
            parse_query({"<": [1, {"var": "x"}, 5]}, "jsonlogic")

    def test_in(self):
        """in is membership or substring by argument shape."""
        assert parse_query({"in": [{"var": "s"}, ["a", "b"]]}, "jsonlogic") == single(
            Rule("s", "in", "a,b")
        )
        assert parse_query({"in": ["oh", {"var": "n"}]}, "jsonlogic") == single(
            Rule("n", "contains", "oh")
        )
        assert parse_query({"!": {"in": [{"var": "s"}, ["a"]]}}, "jsonlogic") == single(
            Rule("s", "notIn", "a")
        )

    def test_text_operations(self):
        """startsWith / endsWith."""
        assert parse_query({"startsWith": [{"var": "n"}, "J"]}, "jsonlogic") == single(
            Rule("n", "beginsWith", "J")
        )
        assert parse_query({"!": [{"endsWith": [{"var": "n"}, "z"]}]}, "jsonlogic") == single(
            Rule("n", "doesNotEndWith", "z")
        )

    def test_null(self):
        """Comparison with null is a null check."""
        assert parse_query({"==": [{"var": "x"}, None]}, "jsonlogic") == single(Rule("x", "null", None))
        assert parse_query({"!=": [{"var": "x"}, None]}, "jsonlogic") == single(
            Rule("x", "notNull", None)
        )

    def test_negated_group(self):
        """! over a group negates it."""
        logic = {"!": {"or": [{"==": [{"var": "a"}, 1]}, {"==": [{"var": "b"}, 2]}]}}
        assert parse_query(logic, "jsonlogic") == RuleGroup(
            "or", [Rule("a", "=", 1), Rule("b", "=", 2)], negated=True
        )

    def test_field_comparison(self):
        """var on both sides."""
        assert parse_query({"<": [{"var": "a"}, {"var": "b"}]}, "jsonlogic") == single(
            Rule("a", "<", "b", value_source="field")
        )

    def test_json_text_and_booleans(self):
        """JSON text; booleans are the empty group."""
        assert parse_query('{"==": [{"var": "a"}, "x"]}', "jsonlogic") == single(Rule("a", "=", "x"))
        assert parse_query(False, "jsonlogic") == RuleGroup("and", [])

    def test_unrepresentable(self):
        """Operations outside the rule model fail."""
        with pytest.raises(UnrepresentableOperatorError):
            parse_query({"some": [{"var": "tags"}, {"==": [{"var": ""}, "x"]}]}, "jsonlogic")

    def test_literal_comparison(self):
        """Two literals cannot form a rule."""
        with pytest.raises(QueryParseError):
            parse_query({"==": [1, 2]}, "jsonlogic")
