"""
Condition trees gate the items of conditional rules.

A condition is a boolean expression over rule names, combined with
&& (and), || (or), ! (not) and parentheses. A name is true when that rule
has already fired in the current generation pass:

    Intro && !Outro
    (Agent || CoAgent) && Verb

! binds tighter than &&, which binds tighter than ||.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Container, Iterator

from . import lexer
from .errors import MalformedCondition
from .lexer import TokenStream

# --- Nodes ---

class CondNode(ABC):
    """Base class for all condition tree nodes."""

    @abstractmethod
    def evaluate(self, fired: Container[str]) -> bool:
        pass

    @abstractmethod
    def rule_names(self) -> Iterator[str]:
        """Yields every rule name tested by this subtree, in source order."""
        pass

@dataclass(frozen=True)
class RuleFired(CondNode):
    name: str

    def evaluate(self, fired: Container[str]) -> bool:
        return self.name in fired

    def rule_names(self) -> Iterator[str]:
        yield self.name

    def __str__(self) -> str:
        return self.name

@dataclass(frozen=True)
class And(CondNode):
    left: CondNode
    right: CondNode

    def evaluate(self, fired: Container[str]) -> bool:
        return self.left.evaluate(fired) and self.right.evaluate(fired)

    def rule_names(self) -> Iterator[str]:
        yield from self.left.rule_names()
        yield from self.right.rule_names()

    def __str__(self) -> str:
        return f"{self.left} && {self.right}"

@dataclass(frozen=True)
class Or(CondNode):
    left: CondNode
    right: CondNode

    def evaluate(self, fired: Container[str]) -> bool:
        return self.left.evaluate(fired) or self.right.evaluate(fired)

    def rule_names(self) -> Iterator[str]:
        yield from self.left.rule_names()
        yield from self.right.rule_names()

    def __str__(self) -> str:
        return f"{self.left} || {self.right}"

@dataclass(frozen=True)
class Not(CondNode):
    child: CondNode

    def evaluate(self, fired: Container[str]) -> bool:
        return not self.child.evaluate(fired)

    def rule_names(self) -> Iterator[str]:
        return self.child.rule_names()

    def __str__(self) -> str:
        return f"!{self.child}"

@dataclass(frozen=True)
class Group(CondNode):
    """Parenthesized sub-expression. Kept in the tree so text round-trips."""
    child: CondNode

    def evaluate(self, fired: Container[str]) -> bool:
        return self.child.evaluate(fired)

    def rule_names(self) -> Iterator[str]:
        return self.child.rule_names()

    def __str__(self) -> str:
        return f"({self.child})"

def evaluate(tree: CondNode, fired: Container[str]) -> bool:
    return tree.evaluate(fired)

# --- Parser ---

class ConditionParser:
    """
    Recursive-descent parser for condition expressions.

    Reads from a TokenStream shared with the grammar parser and stops at the
    first token that cannot continue the expression, leaving it unconsumed.
    """

    def __init__(self, stream: TokenStream):
        self.stream = stream

    def parse(self) -> CondNode:
        return self._parse_or()

    def _parse_or(self) -> CondNode:
        node = self._parse_and()
        while self.stream.accept(lexer.OR):
            node = Or(node, self._parse_and())
        return node

    def _parse_and(self) -> CondNode:
        node = self._parse_unary()
        while self.stream.accept(lexer.AND):
            node = And(node, self._parse_unary())
        return node

    def _parse_unary(self) -> CondNode:
        if self.stream.accept(lexer.NOT):
            return Not(self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> CondNode:
        tok = self.stream.next()
        if tok.kind == lexer.NAME:
            return RuleFired(tok.value)
        if tok.kind == lexer.LPAREN:
            inner = self._parse_or()
            close = self.stream.next()
            if close.kind != lexer.RPAREN:
                raise MalformedCondition(f"unbalanced parentheses: expected ')' but found {close.describe()}", close.line)
            return Group(inner)
        if tok.kind == lexer.RPAREN:
            raise MalformedCondition("empty expression or unbalanced ')'", tok.line)
        raise MalformedCondition(f"expected a rule name but found {tok.describe()}", tok.line)

def parse_condition(text: str) -> CondNode:
    """Parses a standalone condition expression such as 'A && !(B || C)'."""
    stream = TokenStream(lexer.tokenize(text))
    stream.skip_newlines()
    if stream.peek().kind == lexer.EOF:
        raise MalformedCondition("empty expression", stream.peek().line)
    node = ConditionParser(stream).parse()
    stream.skip_newlines()
    rest = stream.peek()
    if rest.kind == lexer.RPAREN:
        raise MalformedCondition("unbalanced parentheses: unexpected ')'", rest.line)
    if rest.kind != lexer.EOF:
        raise MalformedCondition(f"unexpected {rest.describe()} after expression", rest.line)
    return node
