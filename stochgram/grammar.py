"""
Grammar model and rule-text parser.

Rules text:

    Sentence {
        %60 Agent Verb Patient
        Agent Verb
    }

    Agent {
        =Agent
        'the' 'dog' =Animal=dog
        'the' 'cat' =Animal=cat
    }

    Patient ? {
        Verb && !Agent 'the' 'ball'
        Agent {
            'a' 'bone'
            'a' 'stick'
        }
    }

Unconditional rules pick one item at random, optionally weighted by a
leading %pct. Weights may add up to less than 100, in which case the
remainder is the chance that the rule produces nothing. Items without a
weight share what is left evenly.

Conditional rules (Name ? { ... }) gate each item with a condition over
rules that already fired in the pass (see conditions.py).

Terminal tokens are 'quoted'; bare names refer to other rules. A line
holding only =State expressions belongs to the rule (or to the block it
opens); trailing =State expressions belong to the item. =Name=Value sets
a state directly; =Name takes its value from the rule name or from the
first element of the item.

// and # start comments, ; breaks a line.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from . import lexer
from .choice import normalize_percents
from .conditions import CondNode, ConditionParser
from .errors import (
    DuplicateRuleName,
    GrammarSyntaxError,
    MalformedCondition,
    MissingConditionOnItem,
    UndefinedRuleReference,
    WeightSumExceeded,
)
from .lexer import Token, TokenStream

logger = logging.getLogger(__name__)

WEIGHT_EPSILON = 1e-9

_BARE_VALUE_RE = re.compile(r"^[^\s{}'\";=#/%]+$")

# --- Model ---

@dataclass(frozen=True)
class Literal:
    """Terminal token, emitted as-is."""
    text: str

    def __str__(self) -> str:
        quote = '"' if "'" in self.text else "'"
        return f"{quote}{self.text}{quote}"

@dataclass(frozen=True)
class RuleRef:
    """Reference to another rule, resolved to its index in Grammar.rules."""
    name: str
    index: int

    def __str__(self) -> str:
        return self.name

Element = Union[Literal, RuleRef]

@dataclass(frozen=True)
class StateExpr:
    name: str
    value: Optional[str] = None

    @property
    def implicit(self) -> bool:
        return self.value is None

    def __str__(self) -> str:
        if self.value is None:
            return f"={self.name}"
        value = self.value
        if not _BARE_VALUE_RE.match(value):
            value = f'"{value}"' if "'" in value else f"'{value}'"
        return f"={self.name}={value}"

@dataclass(frozen=True)
class Item:
    elements: Tuple[Element, ...] = ()
    weight: Optional[float] = None
    condition: Optional[CondNode] = None
    states: Tuple[StateExpr, ...] = ()

    @property
    def implicit_value(self) -> Optional[str]:
        """Value used by =Name without an explicit value: the first element's text or rule name."""
        if not self.elements:
            return None
        first = self.elements[0]
        return first.text if isinstance(first, Literal) else first.name

    def to_text(self) -> str:
        parts: List[str] = []
        if self.condition is not None:
            parts.append(str(self.condition))
        if self.weight is not None:
            parts.append(f"%{_format_weight(self.weight)}")
        parts.extend(str(el) for el in self.elements)
        parts.extend(str(st) for st in self.states)
        return " ".join(parts)

@dataclass(frozen=True)
class Rule:
    name: str
    conditional: bool
    items: Tuple[Item, ...] = ()
    states: Tuple[StateExpr, ...] = ()
    # effective selection probabilities of unconditional rules, precomputed at load
    probs: Tuple[float, ...] = field(default=(), compare=False)

    def to_text(self) -> str:
        head = f"{self.name} ? {{" if self.conditional else f"{self.name} {{"
        lines = [head]
        if self.states:
            lines.append("    " + " ".join(str(st) for st in self.states))
        lines.extend("    " + it.to_text() for it in self.items)
        lines.append("}")
        return "\n".join(lines)

class Grammar:
    """
    Parsed, immutable set of rules. Safe to share between any number of
    generation passes; all pass state lives in the Generator.
    """

    def __init__(self, rules: Sequence[Rule], name: str = ""):
        self.rules: Tuple[Rule, ...] = tuple(rules)
        self.name = name
        self._index: Dict[str, int] = {rl.name: i for i, rl in enumerate(self.rules)}

    @property
    def top(self) -> Optional[Rule]:
        """First rule in the text, expanded when no start rule is given."""
        return self.rules[0] if self.rules else None

    @property
    def rule_names(self) -> List[str]:
        return [rl.name for rl in self.rules]

    def rule(self, name: str) -> Rule:
        return self.rules[self._index[name]]

    def to_text(self) -> str:
        return "\n\n".join(rl.to_text() for rl in self.rules) + "\n"

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Grammar(name={self.name!r}, rules={self.rule_names!r})"

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grammar):
            return NotImplemented
        return self.rules == other.rules

    def __hash__(self) -> int:
        return hash(self.rules)

def _format_weight(w: float) -> str:
    return str(int(w)) if float(w).is_integer() else repr(float(w))

# --- Parser ---

class _ItemDraft:
    """Item as read from the text, before rule names are resolved."""

    def __init__(self, line: int, weight: Optional[float], names: List[Token],
                 condition: Optional[CondNode], states: List[StateExpr]):
        self.line = line
        self.weight = weight
        self.names = names
        self.condition = condition
        self.states = states

class _RuleDraft:
    def __init__(self, name: str, conditional: bool, line: int):
        self.name = name
        self.conditional = conditional
        self.line = line
        self.items: List[_ItemDraft] = []
        self.states: List[StateExpr] = []

class GrammarParser:
    """
    Builds a Grammar from rules text.

    Parsing runs in two phases: the text is read into drafts, then names are
    resolved to rule indices and weights are checked. Any problem raises a
    GrammarError subclass and no Grammar is produced.
    """

    def __init__(self, text: str, name: str = ""):
        self.name = name
        self.stream = TokenStream(lexer.tokenize(text))
        self.drafts: List[_RuleDraft] = []
        self.seen: Dict[str, int] = {}

    def parse(self) -> Grammar:
        while True:
            self.stream.skip_newlines()
            if self.stream.peek().kind == lexer.EOF:
                break
            self.drafts.append(self._parse_rule())

        index = {d.name: i for i, d in enumerate(self.drafts)}
        rules = [self._build_rule(d, index) for d in self.drafts]
        grammar = Grammar(rules, self.name)
        logger.debug("Loaded grammar %r with %d rules", self.name, len(rules))
        return grammar

    # --- Phase 1: text -> drafts ---

    def _parse_rule(self) -> _RuleDraft:
        tok = self.stream.next()
        if tok.kind != lexer.NAME:
            raise GrammarSyntaxError(f"expected a rule name but found {tok.describe()}", tok.line)
        if tok.value in self.seen:
            raise DuplicateRuleName(f"rule '{tok.value}' already defined on line {self.seen[tok.value]}", tok.line)
        self.seen[tok.value] = tok.line

        draft = _RuleDraft(tok.value, self.stream.accept(lexer.QMARK) is not None, tok.line)
        brace = self.stream.next()
        if brace.kind != lexer.LBRACE:
            raise GrammarSyntaxError(f"expected '{{' after rule '{draft.name}' but found {brace.describe()}", brace.line)

        if draft.conditional:
            self._parse_conditional_body(draft)
        else:
            draft.items, draft.states = self._parse_block(draft, None)
        return draft

    def _parse_block(self, draft: _RuleDraft, condition: Optional[CondNode]) -> Tuple[List[_ItemDraft], List[StateExpr]]:
        """Reads item lines up to and including the closing brace."""
        items: List[_ItemDraft] = []
        states: List[StateExpr] = []
        while True:
            self.stream.skip_newlines()
            tok = self.stream.peek()
            if tok.kind == lexer.RBRACE:
                self.stream.next()
                return items, states
            if tok.kind == lexer.EOF:
                raise GrammarSyntaxError(f"missing '}}' to close rule '{draft.name}'", draft.line)
            if tok.kind == lexer.STATE:
                states.extend(self._parse_states())
                continue
            if tok.kind in (lexer.NOT, lexer.AND, lexer.OR, lexer.LPAREN, lexer.RPAREN, lexer.LBRACE):
                raise GrammarSyntaxError(
                    f"unexpected {tok.describe()} in rule '{draft.name}': conditions need a conditional rule ('{draft.name} ? {{')",
                    tok.line)
            items.append(self._parse_item(draft, condition))

    def _parse_conditional_body(self, draft: _RuleDraft) -> None:
        while True:
            self.stream.skip_newlines()
            tok = self.stream.peek()
            if tok.kind == lexer.RBRACE:
                self.stream.next()
                return
            if tok.kind == lexer.EOF:
                raise GrammarSyntaxError(f"missing '}}' to close rule '{draft.name}'", draft.line)
            if tok.kind == lexer.STATE:
                draft.states.extend(self._parse_states())
                continue
            if tok.kind in (lexer.LITERAL, lexer.WEIGHT):
                raise MissingConditionOnItem(f"item in conditional rule '{draft.name}' has no condition", tok.line)
            if tok.kind not in (lexer.NAME, lexer.NOT, lexer.LPAREN):
                raise MalformedCondition(f"expected a condition in rule '{draft.name}' but found {tok.describe()}", tok.line)

            condition = ConditionParser(self.stream).parse()
            nxt = self.stream.peek()
            if nxt.kind == lexer.RPAREN:
                raise MalformedCondition("unbalanced parentheses: unexpected ')'", nxt.line)
            if nxt.kind in (lexer.NEWLINE, lexer.RBRACE, lexer.EOF):
                raise MissingConditionOnItem(
                    f"'{condition}' in conditional rule '{draft.name}' has no item; "
                    f"write 'condition item' or 'condition {{ items }}'", tok.line)
            if self.stream.accept(lexer.LBRACE):
                items, block_states = self._parse_block(draft, condition)
                if not items:
                    raise GrammarSyntaxError(f"block '{condition} {{ }}' in rule '{draft.name}' has no items", tok.line)
                # block states fire with every block item, ahead of the item's own;
                # an implicit =Name takes the rule name
                block_states = [StateExpr(st.name, draft.name) if st.implicit else st for st in block_states]
                for it in items:
                    it.states = block_states + it.states
                draft.items.extend(items)
            else:
                draft.items.append(self._parse_item(draft, condition))

    def _parse_item(self, draft: _RuleDraft, condition: Optional[CondNode]) -> _ItemDraft:
        line = self.stream.peek().line
        weight = None
        wtok = self.stream.accept(lexer.WEIGHT)
        if wtok is not None:
            weight = self._parse_weight(wtok, draft)

        names: List[Token] = []
        while self.stream.peek().kind in (lexer.NAME, lexer.LITERAL):
            names.append(self.stream.next())
        states = self._parse_states()

        end = self.stream.peek()
        if end.kind not in (lexer.NEWLINE, lexer.RBRACE, lexer.EOF):
            if end.kind in (lexer.NAME, lexer.LITERAL):
                raise GrammarSyntaxError(f"state expressions must come last in an item of rule '{draft.name}'", end.line)
            raise GrammarSyntaxError(f"unexpected {end.describe()} in item of rule '{draft.name}'", end.line)
        if not names and not states:
            raise GrammarSyntaxError(f"empty item in rule '{draft.name}'", line)
        return _ItemDraft(line, weight, names, condition, states)

    def _parse_weight(self, tok: Token, draft: _RuleDraft) -> float:
        try:
            weight = float(tok.value)
        except ValueError:
            raise GrammarSyntaxError(f"invalid weight '%{tok.value}' in rule '{draft.name}'", tok.line) from None
        if not weight > 0:
            raise GrammarSyntaxError(f"weight '%{tok.value}' in rule '{draft.name}' must be greater than 0", tok.line)
        if weight > 100 + WEIGHT_EPSILON:
            raise WeightSumExceeded(f"weight '%{tok.value}' in rule '{draft.name}' is above 100", tok.line)
        return weight

    def _parse_states(self) -> List[StateExpr]:
        states = []
        while self.stream.peek().kind == lexer.STATE:
            sname, svalue = self.stream.next().value
            states.append(StateExpr(sname, svalue))
        return states

    # --- Phase 2: drafts -> model ---

    def _build_rule(self, draft: _RuleDraft, index: Dict[str, int]) -> Rule:
        self._check_weights(draft)
        items = []
        for it in draft.items:
            elements: List[Element] = []
            for tok in it.names:
                if tok.kind == lexer.LITERAL:
                    elements.append(Literal(tok.value))
                elif tok.value in index:
                    elements.append(RuleRef(tok.value, index[tok.value]))
                else:
                    raise UndefinedRuleReference(tok.value, tok.line, f"rule '{draft.name}'")
            if it.condition is not None:
                for name in it.condition.rule_names():
                    if name not in index:
                        raise UndefinedRuleReference(name, it.line, f"condition of rule '{draft.name}'")
            items.append(Item(tuple(elements), it.weight, it.condition, tuple(it.states)))

        probs: Tuple[float, ...] = ()
        if not draft.conditional:
            probs = tuple(normalize_percents([it.weight for it in items]))
        return Rule(draft.name, draft.conditional, tuple(items), tuple(draft.states), probs)

    def _check_weights(self, draft: _RuleDraft) -> None:
        """Weights add up per condition: items gated by the same condition compete, others do not."""
        groups: Dict[Optional[CondNode], List[_ItemDraft]] = {}
        for it in draft.items:
            groups.setdefault(it.condition, []).append(it)
        for group in groups.values():
            self._check_group_weights(draft, group)

    def _check_group_weights(self, draft: _RuleDraft, group: List[_ItemDraft]) -> None:
        explicit = sum(it.weight for it in group if it.weight is not None)
        n_free = sum(1 for it in group if it.weight is None)
        if explicit > 100 + WEIGHT_EPSILON:
            raise WeightSumExceeded(f"weights of rule '{draft.name}' sum to {_format_weight(explicit)}, above 100", draft.line)
        if n_free and explicit >= 100 - WEIGHT_EPSILON:
            raise WeightSumExceeded(
                f"weights of rule '{draft.name}' sum to 100, leaving nothing for its {n_free} unweighted item(s)",
                draft.line)

def parse_grammar(text: str, name: str = "") -> Grammar:
    """Parses rules text into a Grammar. Raises a GrammarError subclass on any problem."""
    return GrammarParser(text, name).parse()
