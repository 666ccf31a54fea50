"""Declarative condition expressions for condition steps.

A condition is a small closed tree of nodes (field lookups, literal values,
comparisons and boolean combinators) interpreted against an instance's data.
Nothing is compiled or executed: strings such as ``x > 5`` or
``data.priority === "high" && !escalated`` are tokenized and parsed into the
same tree that a structured definition produces, e.g.::

    {"kind": "compare", "op": ">", "left": {"kind": "field", "path": ["x"]},
     "right": {"kind": "value", "value": 5}}
"""

from __future__ import annotations

import logging
import operator
import re
from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from .errors import ValidationError

logger = logging.getLogger(__name__)


class ConditionSyntaxError(ValidationError):
    pass


class CompareOp(str, Enum):
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    IN = "in"
    NOT_IN = "not in"


def _contains(container: Any, item: Any) -> bool:
    return item in container


_COMPARATORS: dict[CompareOp, Callable[[Any, Any], Any]] = {
    CompareOp.EQ: operator.eq,
    CompareOp.NE: operator.ne,
    CompareOp.LT: operator.lt,
    CompareOp.LE: operator.le,
    CompareOp.GT: operator.gt,
    CompareOp.GE: operator.ge,
    CompareOp.IN: lambda left, right: _contains(right, left),
    CompareOp.NOT_IN: lambda left, right: not _contains(right, left),
}


class FieldRef(BaseModel):
    """Looks up a (possibly nested) key in the data bag; missing keys yield None."""

    kind: Literal["field"] = "field"
    path: list[str | int]

    def evaluate(self, data: Mapping[str, Any]) -> Any:
        current: Any = data
        for part in self.path:
            if isinstance(current, Mapping) and part in current:
                current = current[part]
            elif (
                isinstance(part, int)
                and isinstance(current, Sequence)
                and not isinstance(current, str)
                and -len(current) <= part < len(current)
            ):
                current = current[part]
            else:
                return None
        return current


class Value(BaseModel):
    kind: Literal["value"] = "value"
    value: Any = None

    def evaluate(self, data: Mapping[str, Any]) -> Any:
        return self.value


class Compare(BaseModel):
    kind: Literal["compare"] = "compare"
    op: CompareOp
    left: Expression
    right: Expression

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        left = self.left.evaluate(data)
        right = self.right.evaluate(data)
        try:
            return bool(_COMPARATORS[self.op](left, right))
        except TypeError:
            # Ordering None against a number and similar mismatches are false.
            logger.warning(
                "Condition operands are not comparable",
                extra={"op": self.op.value, "left": repr(left), "right": repr(right)},
            )
            return False


class And(BaseModel):
    kind: Literal["and"] = "and"
    items: list[Expression] = Field(min_length=1)

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        return all(bool(item.evaluate(data)) for item in self.items)


class Or(BaseModel):
    kind: Literal["or"] = "or"
    items: list[Expression] = Field(min_length=1)

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        return any(bool(item.evaluate(data)) for item in self.items)


class Not(BaseModel):
    kind: Literal["not"] = "not"
    operand: Expression

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        return not bool(self.operand.evaluate(data))


Expression = Annotated[
    Union[FieldRef, Value, Compare, And, Or, Not],
    Field(discriminator="kind"),
]

for _model in (Compare, And, Or, Not):
    _model.model_rebuild()


def evaluate_condition(expression: Expression, data: Mapping[str, Any]) -> bool:
    """Evaluate an expression against a data bag and coerce the result to bool."""
    return bool(expression.evaluate(data))


# --- parsing -----------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!().\[\],])
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)

_KEYWORD_VALUES: dict[str, Any] = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "None": None,
}

_COMPARE_TOKENS: dict[str, CompareOp] = {
    "==": CompareOp.EQ,
    "===": CompareOp.EQ,
    "!=": CompareOp.NE,
    "!==": CompareOp.NE,
    "<": CompareOp.LT,
    "<=": CompareOp.LE,
    ">": CompareOp.GT,
    ">=": CompareOp.GE,
}

# Leading name stripped from paths so `data.priority` and `priority` are equivalent.
_DATA_ROOT = "data"

_Token = tuple[str, str, int]


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ConditionSyntaxError(f"Unexpected character {text[pos]!r} at offset {pos}")
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append((kind, match.group(), pos))
        pos = match.end()
    return tokens


def _unquote(raw: str) -> str:
    return re.sub(r"\\(.)", r"\1", raw[1:-1])


class _Parser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._tokens = _tokenize(text)
        self._pos = 0

    def parse(self) -> Expression:
        if not self._tokens:
            raise ConditionSyntaxError("Condition is empty")
        expr = self._or()
        if self._pos < len(self._tokens):
            _, value, offset = self._tokens[self._pos]
            raise ConditionSyntaxError(f"Unexpected {value!r} at offset {offset}")
        return expr

    def _peek(self) -> str | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos][1]
        return None

    def _next(self) -> _Token:
        if self._pos >= len(self._tokens):
            raise ConditionSyntaxError(f"Unexpected end of condition: {self._text!r}")
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _expect(self, value: str) -> None:
        _, got, offset = self._next()
        if got != value:
            raise ConditionSyntaxError(f"Expected {value!r} at offset {offset}, got {got!r}")

    def _or(self) -> Expression:
        items = [self._and()]
        while self._peek() in ("or", "||"):
            self._pos += 1
            items.append(self._and())
        return items[0] if len(items) == 1 else Or(items=items)

    def _and(self) -> Expression:
        items = [self._not()]
        while self._peek() in ("and", "&&"):
            self._pos += 1
            items.append(self._not())
        return items[0] if len(items) == 1 else And(items=items)

    def _not(self) -> Expression:
        if self._peek() in ("not", "!"):
            self._pos += 1
            return Not(operand=self._not())
        return self._comparison()

    def _comparison(self) -> Expression:
        left = self._operand()
        token = self._peek()
        if token in _COMPARE_TOKENS:
            self._pos += 1
            return Compare(op=_COMPARE_TOKENS[token], left=left, right=self._operand())
        if token == "in":
            self._pos += 1
            return Compare(op=CompareOp.IN, left=left, right=self._operand())
        if token == "not" and self._lookahead(1) == "in":
            self._pos += 2
            return Compare(op=CompareOp.NOT_IN, left=left, right=self._operand())
        return left

    def _lookahead(self, offset: int) -> str | None:
        idx = self._pos + offset
        return self._tokens[idx][1] if idx < len(self._tokens) else None

    def _operand(self) -> Expression:
        kind, value, offset = self._next()
        if value == "(" and kind == "op":
            expr = self._or()
            self._expect(")")
            return expr
        if value == "[" and kind == "op":
            return Value(value=self._list_items())
        if kind == "number":
            return Value(value=float(value) if "." in value else int(value))
        if kind == "string":
            return Value(value=_unquote(value))
        if kind == "name":
            if value in _KEYWORD_VALUES:
                return Value(value=_KEYWORD_VALUES[value])
            if value in ("and", "or", "not", "in"):
                raise ConditionSyntaxError(f"Unexpected keyword {value!r} at offset {offset}")
            return self._path(value)
        raise ConditionSyntaxError(f"Unexpected {value!r} at offset {offset}")

    def _list_items(self) -> list[Any]:
        items: list[Any] = []
        if self._peek() == "]":
            self._pos += 1
            return items
        while True:
            item = self._operand()
            if not isinstance(item, Value):
                raise ConditionSyntaxError("List literals may only contain values")
            items.append(item.value)
            _, value, offset = self._next()
            if value == "]":
                return items
            if value != ",":
                raise ConditionSyntaxError(f"Expected ',' or ']' at offset {offset}")

    def _path(self, head: str) -> FieldRef:
        path: list[str | int] = [head]
        while self._peek() in (".", "["):
            _, value, _ = self._next()
            if value == ".":
                kind, name, offset = self._next()
                if kind != "name":
                    raise ConditionSyntaxError(f"Expected a field name at offset {offset}")
                path.append(name)
            else:
                kind, key, offset = self._next()
                if kind == "string":
                    path.append(_unquote(key))
                elif kind == "number" and "." not in key:
                    path.append(int(key))
                else:
                    raise ConditionSyntaxError(f"Invalid index at offset {offset}")
                self._expect("]")
        if path[0] == _DATA_ROOT and len(path) > 1:
            path = path[1:]
        return FieldRef(path=path)


def parse_condition(text: str) -> Expression:
    """Parse a condition string into an expression tree.

    Raises:
        ConditionSyntaxError: If the text is not a valid condition.
    """
    return _Parser(text).parse()
