"""
Shared pytest fixtures for the stochgram test suite.

Provides:
    - sentence_text: a small grammar mixing weighted and conditional rules
    - sentence_grammar: sentence_text parsed
    - FixedRng: stand-in random source that always draws the same value
"""

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Ensure the package is importable regardless of where pytest is invoked
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from stochgram import parse_grammar  # noqa: E402

SENTENCE_TEXT = """
// agent verb patient, with state annotations
Sentence {
    Agent Verb Patient
}

Agent {
    =Agent
    %50 'the' 'dog' =Animal=dog
    %50 'the' 'cat' =Animal=cat
}

Verb {
    'chased' =Action
    'watched' =Action
}

Patient ? {
    Verb && Agent {
        'a' 'ball'
        'a' 'stick'
    }
    !Verb 'nothing' =Patient=none
}
"""


class FixedRng:
    """Random source whose random() always returns the same value."""

    def __init__(self, value):
        self.value = value
        self.calls = 0

    def random(self):
        self.calls += 1
        return self.value


@pytest.fixture
def sentence_text():
    return SENTENCE_TEXT


@pytest.fixture
def sentence_grammar():
    return parse_grammar(SENTENCE_TEXT, name="sentence")


@pytest.fixture
def fixed_rng():
    """Factory for FixedRng instances."""
    return FixedRng
