"""
Boolean filter over records.

    size>100G & remote=no
    (type=xfs | type=ext4) & use > 65%
    !fs=*loop* | disk<>HDD

Operators: = <> != < <= > >=, & (and), | (or), ! (not), parentheses.
"""

import fnmatch
import re
from typing import Any, Callable, List, NamedTuple, Optional

from .columns import Column, ValueKind, column
from .errors import FilterError, ParseColumnError
from .schema import ClusterMetaTable, MountRecord
from .units import parse_size

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<op><>|!=|<=|>=|=|<|>)|(?P<punct>[()&|!])|(?P<word>[^\s()&|!<>=]+))"
)

_TRUE = {"yes", "true", "y", "1", "x"}
_FALSE = {"no", "false", "n", "0"}


class _Token(NamedTuple):
    kind: str  # op, punct, word
    text: str


def _tokenize(text: str) -> List[_Token]:
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if not m or m.end() == pos:
            raise FilterError(f"unexpected character {text[pos]!r} at position {pos} in filter")
        kind = m.lastgroup
        tokens.append(_Token(kind, m.group(kind)))
        pos = m.end()
    return tokens


Predicate = Callable[[MountRecord, ClusterMetaTable, bool], bool]


def _literal(col: Column, raw: str) -> Any:
    if col.kind == ValueKind.BOOL:
        low = raw.lower()
        if low in _TRUE:
            return True
        if low in _FALSE:
            return False
        raise FilterError(f"{raw!r} is not a boolean for column {col.name}")
    if col.kind == ValueKind.SHARE:
        try:
            if raw.endswith("%"):
                return float(raw[:-1]) / 100.0
            return float(raw)
        except ValueError:
            raise FilterError(f"{raw!r} is not a percentage for column {col.name}") from None
    if col.kind in (ValueKind.SIZE, ValueKind.COUNT):
        try:
            return parse_size(raw)
        except ValueError:
            raise FilterError(f"{raw!r} is not a number for column {col.name}") from None
    return raw


def _compare(col: Column, op: str, raw: str) -> Predicate:
    expected = _literal(col, raw)
    textual = col.kind == ValueKind.TEXT

    def test(record: MountRecord, meta: ClusterMetaTable, inodes_mode: bool) -> bool:
        value = col.value(record, meta, inodes_mode)
        if value is None:
            return False
        if textual:
            value = str(value).lower()
            target = expected.lower()
            if op in ("=", "<>", "!="):
                matched = fnmatch.fnmatchcase(value, target) if "*" in target else value == target
                return matched if op == "=" else not matched
        else:
            target = expected
            if op == "=":
                return value == target
            if op in ("<>", "!="):
                return value != target
        if op == "<":
            return value < target
        if op == "<=":
            return value <= target
        if op == ">":
            return value > target
        return value >= target
    return test


class _Parser:
    def __init__(self, tokens: List[_Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> Optional[_Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> _Token:
        token = self.peek()
        if token is None:
            raise FilterError("unexpected end of filter")
        self.pos += 1
        return token

    def parse(self) -> Predicate:
        pred = self.expr()
        if self.peek() is not None:
            raise FilterError(f"unexpected {self.peek().text!r} in filter")
        return pred

    def expr(self) -> Predicate:
        terms = [self.term()]
        while self.peek() == _Token("punct", "|"):
            self.take()
            terms.append(self.term())
        if len(terms) == 1:
            return terms[0]
        return lambda r, m, i: any(t(r, m, i) for t in terms)

    def term(self) -> Predicate:
        factors = [self.factor()]
        while self.peek() == _Token("punct", "&"):
            self.take()
            factors.append(self.factor())
        if len(factors) == 1:
            return factors[0]
        return lambda r, m, i: all(f(r, m, i) for f in factors)

    def factor(self) -> Predicate:
        token = self.take()
        if token == _Token("punct", "!"):
            inner = self.factor()
            return lambda r, m, i: not inner(r, m, i)
        if token == _Token("punct", "("):
            inner = self.expr()
            if self.take() != _Token("punct", ")"):
                raise FilterError("missing ')' in filter")
            return inner
        if token.kind != "word":
            raise FilterError(f"expected a column name, found {token.text!r}")
        try:
            col = column(token.text)
        except ParseColumnError as e:
            raise FilterError(str(e)) from e
        op = self.take()
        if op.kind != "op":
            raise FilterError(f"expected an operator after {token.text!r}, found {op.text!r}")
        value = self.take()
        if value.kind != "word":
            raise FilterError(f"expected a value after {token.text}{op.text}")
        return _compare(col, op.text, value.text)


class BoolFilter:
    """A parsed filter expression. The empty expression keeps every row."""

    def __init__(self, text: str = "") -> None:
        self.text = text
        tokens = _tokenize(text)
        self._predicate: Optional[Predicate] = _Parser(tokens).parse() if tokens else None

    @classmethod
    def parse(cls, text: str) -> "BoolFilter":
        return cls(text)

    def evaluate(
        self,
        records: List[MountRecord],
        meta: Optional[ClusterMetaTable] = None,
        inodes_mode: bool = False,
    ) -> List[MountRecord]:
        if self._predicate is None:
            return list(records)
        meta = meta if meta is not None else ClusterMetaTable()
        try:
            return [r for r in records if self._predicate(r, meta, inodes_mode)]
        except TypeError as e:
            raise FilterError(f"filter evaluation failed: {e}") from e
