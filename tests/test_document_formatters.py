#!/usr/bin/env python3
"""
Tests for the MongoDB, JsonLogic and Qdrant formatters.
"""

import pytest

from qdrant_client.models import (
    FieldCondition, Filter, IsNullCondition, MatchAny, MatchText, MatchValue, PayloadField, Range,
)

from querybridge import FormatOptions, Rule, RuleGroup, format_query
from querybridge.exceptions import UnsupportedOperatorError, UnsupportedValueError
from querybridge.formatters import QdrantFormatter


class TestMongoDBFormatter:
    """Test the mongodb format."""

    def test_sample_query(self, sample_query):
        """Groups become $and / $or lists."""
        result = format_query(sample_query, "mongodb", parse_numbers=True)
        assert result == {"$and": [
            {"age": {"$gte": 18, "$lte": 65}},
            {"$or": [
                {"status": {"$in": ["active", "pending"]}},
                {"name": {"$regex": "^J"}},
            ]},
        ]}

    def test_comparisons(self):
        """Comparison operators map to $-operators."""
        query = RuleGroup("and", [Rule("a", "=", "x"), Rule("b", "<", "5")])
        assert format_query(query, "mongodb", parse_numbers=True) == {"$and": [
            {"a": {"$eq": "x"}}, {"b": {"$lt": 5}},
        ]}

    def test_not_between(self):
        """notBetween is an $or of two bounds."""
        query = RuleGroup("and", [Rule("age", "notBetween", "1,5")])
        assert format_query(query, "mongodb", parse_numbers=True) == {"$and": [
            {"$or": [{"age": {"$lt": 1}}, {"age": {"$gt": 5}}]},
        ]}

    def test_regex_escaping(self):
        """Text values are escaped and anchored."""
        query = RuleGroup("and", [
            Rule("a", "contains", "1.5"),
            Rule("b", "endsWith", "x"),
            Rule("c", "doesNotBeginWith", "y"),
        ])
        assert format_query(query, "mongodb") == {"$and": [
            {"a": {"$regex": "1\\.5"}},
            {"b": {"$regex": "x$"}},
            {"c": {"$not": {"$regex": "^y"}}},
        ]}

    def test_null_checks(self):
        """null is an equality with None."""
        query = RuleGroup("and", [Rule("a", "null"), Rule("b", "notNull")])
        assert format_query(query, "mongodb") == {"$and": [{"a": None}, {"b": {"$ne": None}}]}

    def test_not_in(self):
        """notIn maps to $nin."""
        query = RuleGroup("and", [Rule("a", "notIn", "x,y")])
        assert format_query(query, "mongodb") == {"$and": [{"a": {"$nin": ["x", "y"]}}]}

    def test_field_comparisons(self):
        """Field-sourced rules use $expr."""
        query = RuleGroup("and", [
            Rule("a", ">", "b", value_source="field"),
            Rule("a", "between", "lo,hi", value_source="field"),
        ])
        assert format_query(query, "mongodb") == {"$and": [
            {"$expr": {"$gt": ["$a", "$b"]}},
            {"$expr": {"$and": [{"$gte": ["$a", "$lo"]}, {"$lte": ["$a", "$hi"]}]}},
        ]}

    def test_field_text_match_unsupported(self):
        """Regex against another field has no representation."""
        query = RuleGroup("and", [Rule("a", "contains", "b", value_source="field")])
        with pytest.raises(UnsupportedValueError):
            format_query(query, "mongodb")

    def test_negated_group(self):
        """Negated groups are wrapped in $nor."""
        query = RuleGroup("or", [Rule("a", "=", "x")], negated=True)
        assert format_query(query, "mongodb") == {"$nor": [{"$or": [{"a": {"$eq": "x"}}]}]}

    def test_empty_query(self):
        """The fallback matches everything."""
        assert format_query(RuleGroup("and", []), "mongodb") == {"$and": [{"$expr": True}]}

    def test_skipped_rules(self):
        """Incomplete rules are left out."""
        query = RuleGroup("and", [Rule("a", "in", ""), Rule("b", "=", "x")])
        assert format_query(query, "mongodb") == {"$and": [{"b": {"$eq": "x"}}]}

    def test_text_match_keeps_digits(self):
        """Digits in a text match stay a regex string."""
        query = RuleGroup("and", [Rule("name", "contains", "5")])
        assert format_query(query, "mongodb", parse_numbers=True) == {"$and": [
            {"name": {"$regex": "5"}},
        ]}

    def test_value_processor(self):
        """A value processor supplies the embedded value."""
        query = RuleGroup("and", [
            Rule("a", "=", "1"),
            Rule("b", "notIn", "x"),
            Rule("c", "between", "x,y"),
            Rule("d", "null"),
        ])

        def processor(rule, options):
            return {"a": "OVERRIDDEN", "b": ["p"], "c": "1,9"}[rule.field]

        assert format_query(query, "mongodb", value_processor=processor) == {"$and": [
            {"a": {"$eq": "OVERRIDDEN"}},
            {"b": {"$nin": ["p"]}},
            {"c": {"$gte": "1", "$lte": "9"}},
            {"d": None},
        ]}


class TestJsonLogicFormatter:
    """Test the jsonlogic format."""

    def test_sample_query(self, sample_query):
        """Ranges use the three-argument <= form."""
        result = format_query(sample_query, "jsonlogic", parse_numbers=True)
        assert result == {"and": [
            {"<=": [18, {"var": "age"}, 65]},
            {"or": [
                {"in": [{"var": "status"}, ["active", "pending"]]},
                {"startsWith": [{"var": "name"}, "J"]},
            ]},
        ]}

    def test_contains(self):
        """contains puts the value first."""
        query = RuleGroup("and", [Rule("name", "contains", "oh")])
        assert format_query(query, "jsonlogic") == {"and": [{"in": ["oh", {"var": "name"}]}]}

    def test_negated_operators(self):
        """Negated operators are wrapped in !."""
        query = RuleGroup("and", [
            Rule("a", "notIn", "x,y"),
            Rule("b", "doesNotEndWith", "z"),
            Rule("c", "notBetween", "1,2"),
        ])
        assert format_query(query, "jsonlogic", parse_numbers=True) == {"and": [
            {"!": {"in": [{"var": "a"}, ["x", "y"]]}},
            {"!": {"endsWith": [{"var": "b"}, "z"]}},
            {"!": {"<=": [1, {"var": "c"}, 2]}},
        ]}

    def test_null_checks(self):
        """null compares with None."""
        query = RuleGroup("or", [Rule("a", "null"), Rule("b", "notNull")])
        assert format_query(query, "jsonlogic") == {"or": [
            {"==": [{"var": "a"}, None]}, {"!=": [{"var": "b"}, None]},
        ]}

    def test_field_comparison(self):
        """Field-sourced values are vars."""
        query = RuleGroup("and", [Rule("a", "!=", "b", value_source="field")])
        assert format_query(query, "jsonlogic") == {"and": [{"!=": [{"var": "a"}, {"var": "b"}]}]}

    def test_negated_group(self):
        """Negated groups are wrapped in !."""
        query = RuleGroup("and", [Rule("a", "=", "1")], negated=True)
        assert format_query(query, "jsonlogic") == {"!": {"and": [{"==": [{"var": "a"}, "1"]}]}}

    def test_text_match_keeps_digits(self):
        """Substring values stay strings when numbers are parsed."""
        query = RuleGroup("and", [Rule("name", "contains", "5"), Rule("code", "beginsWith", 7)])
        assert format_query(query, "jsonlogic", parse_numbers=True) == {"and": [
            {"in": ["5", {"var": "name"}]},
            {"startsWith": [{"var": "code"}, "7"]},
        ]}

    def test_value_processor(self):
        """A value processor supplies the embedded value."""
        query = RuleGroup("and", [Rule("a", "=", "1"), Rule("b", "between", "x,y")])

        def processor(rule, options):
            return "OVERRIDDEN" if rule.field == "a" else [1, 9]

        assert format_query(query, "jsonlogic", value_processor=processor) == {"and": [
            {"==": [{"var": "a"}, "OVERRIDDEN"]},
            {"<=": [1, {"var": "b"}, 9]},
        ]}

    def test_empty_query(self):
        """The fallback is false."""
        assert format_query(RuleGroup("and", []), "jsonlogic") is False


class TestQdrantFormatter:
    """Test the qdrant format."""

    def test_must_and_must_not(self):
        """Negative operators go under must_not."""
        query = RuleGroup("and", [Rule("age", ">=", "18"), Rule("status", "!=", "archived")])
        result = format_query(query, "qdrant", parse_numbers=True)
        assert result == Filter(
            must=[FieldCondition(key="age", range=Range(gte=18))],
            must_not=[FieldCondition(key="status", match=MatchValue(value="archived"))],
        )

    def test_or_group(self):
        """or groups become should clauses."""
        query = RuleGroup("or", [Rule("a", "=", "x"), Rule("b", "in", "y,z")])
        assert format_query(query, "qdrant") == Filter(should=[
            FieldCondition(key="a", match=MatchValue(value="x")),
            FieldCondition(key="b", match=MatchAny(any=["y", "z"])),
        ])

    def test_nested_or_in_and(self):
        """A nested should clause becomes its own filter."""
        query = RuleGroup("and", [
            Rule("a", "between", "1,5"),
            RuleGroup("or", [Rule("b", "contains", "x"), Rule("c", "null")]),
        ])
        assert format_query(query, "qdrant", parse_numbers=True) == Filter(must=[
            FieldCondition(key="a", range=Range(gte=1, lte=5)),
            Filter(should=[
                FieldCondition(key="b", match=MatchText(text="x")),
                IsNullCondition(is_null=PayloadField(key="c")),
            ]),
        ])

    def test_negated_group(self):
        """Negated groups nest under must_not."""
        query = RuleGroup("and", [Rule("a", "=", "x")], negated=True)
        assert format_query(query, "qdrant") == Filter(must_not=[
            Filter(must=[FieldCondition(key="a", match=MatchValue(value="x"))]),
        ])

    def test_float_equality(self):
        """Float equality is a closed range."""
        query = RuleGroup("and", [Rule("score", "=", "1.5")])
        assert format_query(query, "qdrant", parse_numbers=True) == Filter(
            must=[FieldCondition(key="score", range=Range(gte=1.5, lte=1.5))]
        )

    def test_range_needs_numbers(self):
        """Ranges over strings are rejected."""
        query = RuleGroup("and", [Rule("a", ">", "abc")])
        with pytest.raises(UnsupportedValueError):
            format_query(query, "qdrant")

    def test_unsupported_operator(self):
        """Qdrant has no prefix match."""
        query = RuleGroup("and", [Rule("a", "beginsWith", "x")])
        with pytest.raises(UnsupportedOperatorError):
            format_query(query, "qdrant")

    def test_empty_query(self):
        """An empty tree has no filter."""
        assert format_query(RuleGroup("and", []), "qdrant") is None

    def test_payload_prefix(self):
        """Non-root fields are nested under the payload prefix."""
        formatter = QdrantFormatter(payload_prefix="metadata", root_fields=["channel"])
        query = RuleGroup("and", [Rule("channel", "=", "general"), Rule("kind", "=", "alert")])
        result = formatter.format(query, FormatOptions.build("qdrant").resolve())
        assert result == Filter(must=[
            FieldCondition(key="channel", match=MatchValue(value="general")),
            FieldCondition(key="metadata.kind", match=MatchValue(value="alert")),
        ])

    def test_value_processor(self):
        """A value processor supplies match values and bounds."""
        query = RuleGroup("and", [
            Rule("a", "=", "1"),
            Rule("b", "in", "x"),
            Rule("c", "between", "low,high"),
        ])

        def processor(rule, options):
            return {"a": "OVERRIDDEN", "b": ["p", "q"], "c": [1, 9]}[rule.field]

        assert format_query(query, "qdrant", value_processor=processor) == Filter(must=[
            FieldCondition(key="a", match=MatchValue(value="OVERRIDDEN")),
            FieldCondition(key="b", match=MatchAny(any=["p", "q"])),
            FieldCondition(key="c", range=Range(gte=1, lte=9)),
        ])
