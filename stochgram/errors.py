from typing import Optional

# --- Load-time errors ---

class GrammarError(Exception):
    """Base class for every error raised while building a Grammar."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.message = message
        self.line = line
        super().__init__(f"line {line}: {message}" if line else message)

class GrammarSyntaxError(GrammarError):
    """Structural problems in the rule text: braces, literals, weights."""
    pass

class DuplicateRuleName(GrammarError):
    pass

class UndefinedRuleReference(GrammarError):
    """An item element or a condition leaf names a rule that does not exist."""

    def __init__(self, name: str, line: Optional[int] = None, context: str = ""):
        self.name = name
        where = f" in {context}" if context else ""
        super().__init__(f"undefined rule '{name}'{where}", line)

class WeightSumExceeded(GrammarError):
    pass

class MalformedCondition(GrammarError):
    pass

class MissingConditionOnItem(GrammarError):
    pass

# --- Generation-time errors ---

class GenerationError(Exception):
    """Base class for errors that abort a generation pass."""
    pass

class RecursionLimitExceeded(GenerationError):
    def __init__(self, rule: str, max_depth: int):
        self.rule = rule
        self.max_depth = max_depth
        super().__init__(f"expansion of '{rule}' exceeded max depth {max_depth}")

class UnknownStartRule(GenerationError, KeyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"no rule named '{name}'")

    def __str__(self) -> str:
        return self.args[0]
