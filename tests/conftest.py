"""
Shared pytest fixtures for querybridge tests.
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from querybridge import Field, Rule, RuleGroup

# Keep formatter warnings out of test output
import logging
logging.basicConfig(level=logging.CRITICAL)


# ============================================================================
# Rule tree fixtures
# ============================================================================

@pytest.fixture
def sample_query():
    """age between 18 and 65, and (status in (active, pending) or name begins with J)."""
    return RuleGroup("and", [
        Rule("age", "between", "18,65"),
        RuleGroup("or", [
            Rule("status", "in", ["active", "pending"]),
            Rule("name", "beginsWith", "J"),
        ]),
    ])


@pytest.fixture
def musician_query():
    """A tree touching most operator families, with string-only values."""
    return RuleGroup("and", [
        Rule("firstName", "beginsWith", "Stev"),
        Rule("lastName", "in", "Vai,Vaughan"),
        Rule("age", "between", "26,52"),
        RuleGroup("or", [
            Rule("isMusician", "=", "true"),
            Rule("instrument", "=", "Guitar"),
        ]),
        Rule("groupedField1", "=", "groupedField4", value_source="field"),
        Rule("deletedAt", "null", None),
    ])


@pytest.fixture
def negated_query():
    """A tree built from inverse operators and a negated group."""
    return RuleGroup("or", [
        Rule("name", "doesNotContain", "x"),
        Rule("name", "doesNotEndWith", "y"),
        RuleGroup("and", [
            Rule("age", "notBetween", "1,5"),
            Rule("status", "notIn", "a,b"),
        ], negated=True),
        Rule("email", "notNull", None),
        Rule("score", "!=", "7"),
    ])


@pytest.fixture
def people_fields():
    """Field configuration for the people table."""
    return [
        Field("name", label="Name"),
        Field("age", label="Age", datatype="number", operators=["=", "!=", "<", ">", "between"]),
        Field("status", label="Status", operators=["=", "in", "notIn"]),
    ]
