"""
Generation passes over a parsed Grammar.

Usage
-----
    from stochgram import parse_grammar, Generator

    grammar = parse_grammar(RULES_TEXT)
    gen = Generator(grammar, seed=42)
    result = gen.generate()            # expands the top rule
    print(result.text, result.states)

Each call to generate() is one pass: the firing history and state map start
empty, rules fire in expansion order, and the pass returns the tokens, the
final state map, and which rule fired with which item.

A rule that can reach itself with certainty and no conditional escape never
terminates; max_depth turns that into RecursionLimitExceeded instead of a
Python RecursionError. Pass max_depth=None to disable the guard.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .choice import PROB_EPSILON, choose_item, normalize_percents
from .errors import GenerationError, RecursionLimitExceeded, UnknownStartRule
from .grammar import Grammar, Item, Literal, Rule, StateExpr

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 50

# --- Results ---

@dataclass
class GenResult:
    """Output of one generation pass."""
    tokens: List[str] = field(default_factory=list)
    states: Dict[str, str] = field(default_factory=dict)
    # rule name -> index of the chosen item, None when the rule produced nothing
    fired: Dict[str, Optional[int]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(self.tokens)

    def did_fire(self, name: str) -> bool:
        return name in self.fired

    def fired_item(self, name: str) -> Optional[int]:
        return self.fired.get(name)

class _Pass:
    """Scratch state owned by a single generation pass."""

    def __init__(self):
        self.tokens: List[str] = []
        self.states: Dict[str, str] = {}
        self.fired: Dict[str, Optional[int]] = {}
        self.warnings: List[str] = []

    def warn(self, message: str) -> None:
        logger.warning("%s", message)
        self.warnings.append(message)

    def result(self) -> GenResult:
        return GenResult(self.tokens, self.states, self.fired, self.warnings)

# --- Generator ---

class Generator:
    """
    Runs generation passes over a shared, read-only Grammar.

    Randomness comes from a private random.Random (seeded with `seed`) or from
    an injected `rng`. Every pass allocates its own firing history and state
    map, so one Generator may serve concurrent passes; give each thread its
    own Generator when the random streams must not interleave.
    """

    def __init__(self, grammar: Grammar, seed: Optional[int] = None, rng: Optional[random.Random] = None,
                 max_depth: Optional[int] = DEFAULT_MAX_DEPTH, trace: bool = False):
        if seed is not None and rng is not None:
            raise ValueError("pass either seed or rng, not both")
        self.grammar = grammar
        self.rng = rng if rng is not None else random.Random(seed)
        self.max_depth = max_depth
        self.trace = trace

    def generate(self, *start: str) -> GenResult:
        """
        Runs one pass starting from the named rules, in order, or from the
        grammar's top rule when none are given. Rules fired by an earlier start
        rule are visible to the conditions of later ones.
        """
        if start:
            rules = []
            for name in start:
                if name not in self.grammar:
                    raise UnknownStartRule(name)
                rules.append(self.grammar.rule(name))
        elif self.grammar.top is not None:
            rules = [self.grammar.top]
        else:
            raise GenerationError("grammar has no rules")

        ctx = _Pass()
        for rule in rules:
            self._dispatch(ctx, rule, 0)
        return ctx.result()

    def _choose(self, ctx: _Pass, rule: Rule) -> Optional[int]:
        if not rule.conditional:
            return choose_item(rule.probs, self.rng)

        candidates = [i for i, it in enumerate(rule.items) if it.condition.evaluate(ctx.fired)]
        if not candidates:
            return None
        weights = [rule.items[i].weight for i in candidates]
        explicit = sum(w for w in weights if w is not None)
        if explicit > 100 + PROB_EPSILON or (None in weights and explicit >= 100 - PROB_EPSILON):
            # several weighted groups satisfied at once: their weights become relative
            candidates = [i for i, w in zip(candidates, weights) if w is not None]
            weights = [w * 100.0 / explicit for w in weights if w is not None]
        probs = normalize_percents(weights)
        opt = choose_item(probs, self.rng)
        return candidates[opt] if opt is not None else None

    def _dispatch(self, ctx: _Pass, rule: Rule, depth: int) -> None:
        if self.max_depth is not None and depth >= self.max_depth:
            raise RecursionLimitExceeded(rule.name, self.max_depth)

        opt = self._choose(ctx, rule)
        # recorded before expansion: nested conditions see this rule as fired
        ctx.fired[rule.name] = opt
        if self.trace:
            logger.debug("%sfire %s -> %s", "  " * depth, rule.name, "nothing" if opt is None else f"item {opt}")

        for st in rule.states:
            self._apply_state(ctx, st, rule, None)
        if opt is None:
            return

        item = rule.items[opt]
        for st in item.states:
            self._apply_state(ctx, st, rule, item)

        for el in item.elements:
            if isinstance(el, Literal):
                ctx.tokens.append(el.text)
            else:
                self._dispatch(ctx, self.grammar.rules[el.index], depth + 1)

    def _apply_state(self, ctx: _Pass, st: StateExpr, rule: Rule, item: Optional[Item]) -> None:
        if not st.implicit:
            ctx.states[st.name] = st.value
            return
        if item is None:
            ctx.states[st.name] = rule.name
            return
        if rule.conditional:
            ctx.warn(f"rule '{rule.name}': state '{st.name}' on a conditional item needs an explicit value "
                     f"(={st.name}=Value); skipped")
            return
        value = item.implicit_value
        if value is None:
            ctx.warn(f"rule '{rule.name}': state '{st.name}' has no element to take its value from; skipped")
            return
        ctx.states[st.name] = value

def generate(grammar: Grammar, *start: str, seed: Optional[int] = None,
             max_depth: Optional[int] = DEFAULT_MAX_DEPTH) -> GenResult:
    """One-shot pass with a fresh Generator."""
    return Generator(grammar, seed=seed, max_depth=max_depth).generate(*start)
