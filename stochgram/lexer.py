import re
from typing import List, NamedTuple, Optional

from .errors import GrammarSyntaxError

# --- Tokens ---

NAME = "name"
LITERAL = "literal"
WEIGHT = "weight"
STATE = "state"
LBRACE = "{"
RBRACE = "}"
QMARK = "?"
AND = "&&"
OR = "||"
NOT = "!"
LPAREN = "("
RPAREN = ")"
NEWLINE = "newline"
EOF = "eof"

class Token(NamedTuple):
    kind: str
    value: object
    line: int

    def describe(self) -> str:
        if self.kind == NEWLINE: return "end of line"
        if self.kind == EOF: return "end of input"
        if self.kind == LITERAL: return repr(self.value)
        if self.kind == WEIGHT: return f"%{self.value}"
        if self.kind == STATE: return "=" + "=".join(v for v in self.value if v is not None)
        return str(self.value)

_TOKEN_RE = re.compile(r"""
    (?P<ws>[ \t\r]+)
  | (?P<comment>(?://|\#)[^\n]*)
  | (?P<newline>[\n;])
  | (?P<literal>'[^'\n]*'|"[^"\n]*")
  | (?P<weight>%[^\s{}()'"]*)
  | (?P<state>=(?P<sname>\w+)(?:=(?P<sval>'[^'\n]*'|"[^"\n]*"|[^\s{}'";=]+))?)
  | (?P<name>[A-Za-z_]\w*)
  | (?P<op>&&|\|\||[!(){}?])
""", re.VERBOSE)

def _unquote(s: str) -> str:
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        return s[1:-1]
    return s

def tokenize(text: str) -> List[Token]:
    """Splits grammar source into tokens. Comments and blank space are dropped; ';' counts as a line break."""
    tokens: List[Token] = []
    line = 1
    pos = 0
    n = len(text)
    while pos < n:
        m = _TOKEN_RE.match(text, pos)
        if not m:
            ch = text[pos]
            if ch in ("'", '"'):
                raise GrammarSyntaxError("unterminated literal", line)
            raise GrammarSyntaxError(f"unexpected character {ch!r}", line)
        kind = m.lastgroup
        if kind == "newline":
            tokens.append(Token(NEWLINE, m.group(), line))
            if m.group() == "\n": line += 1
        elif kind == "literal":
            tokens.append(Token(LITERAL, m.group()[1:-1], line))
        elif kind == "weight":
            tokens.append(Token(WEIGHT, m.group()[1:], line))
        elif kind in ("state", "sname", "sval"):
            sval = m.group("sval")
            tokens.append(Token(STATE, (m.group("sname"), _unquote(sval) if sval is not None else None), line))
        elif kind == "name":
            tokens.append(Token(NAME, m.group(), line))
        elif kind == "op":
            tokens.append(Token(m.group(), m.group(), line))
        pos = m.end()
    tokens.append(Token(EOF, None, line))
    return tokens

# --- Token Stream ---

class TokenStream:
    """Cursor over a token list with one token of lookahead."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def next(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != EOF: self.pos += 1
        return tok

    def accept(self, kind: str) -> Optional[Token]:
        if self.peek().kind == kind:
            return self.next()
        return None

    def skip_newlines(self) -> None:
        while self.peek().kind == NEWLINE:
            self.pos += 1
