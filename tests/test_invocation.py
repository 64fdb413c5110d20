"""
Tests for invokeai_invocation.py -- the InvokeAI node wrapper.

Skipped when invokeai is not installed.
"""

import json

import pytest

pytest.importorskip("invokeai")

from invokeai_invocation import StochgramInvocation  # noqa: E402
from stochgram.errors import UndefinedRuleReference  # noqa: E402

GRAMMAR = "A { 'a' =Role=agent }\nB ? { A { 'b' } }"


class TestStochgramInvocation:

    def test_top_rule_when_blank(self):
        out = StochgramInvocation(grammar=GRAMMAR, start_rules="", seed=1).invoke(None)
        assert out.prompt == "a"
        assert json.loads(out.states) == {"Role": "agent"}

    def test_start_rules_list(self):
        out = StochgramInvocation(grammar=GRAMMAR, start_rules="A, B", seed=1).invoke(None)
        assert out.prompt == "a b"

    def test_grammar_errors_propagate(self):
        with pytest.raises(UndefinedRuleReference):
            StochgramInvocation(grammar="A { Nope }", seed=1).invoke(None)
