from .choice import choose_item, normalize_percents, pchoose
from .conditions import And, CondNode, Group, Not, Or, RuleFired, evaluate, parse_condition
from .engine import DEFAULT_MAX_DEPTH, GenResult, Generator, generate
from .errors import (
    DuplicateRuleName,
    GenerationError,
    GrammarError,
    GrammarSyntaxError,
    MalformedCondition,
    MissingConditionOnItem,
    RecursionLimitExceeded,
    UndefinedRuleReference,
    UnknownStartRule,
    WeightSumExceeded,
)
from .grammar import Grammar, GrammarParser, Item, Literal, Rule, RuleRef, StateExpr, parse_grammar

__version__ = "0.1.0"
