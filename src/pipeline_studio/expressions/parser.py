"""Expression parser models and functions.

This module parses the text found between `${{` and `}}` into a small
tagged-union AST:

- ${{ parameters.name }}                  - member access
- ${{ parameters['my-name'] }}            - computed member access
- ${{ eq(variables.env, 'prod') }}        - function call
- ${{ not(parameters.skip) }}             - function call (logical)
- ${{ !parameters.skip && a || b }}       - unary and logical operators
- ${{ parameters.count + 1 }}             - arithmetic
- ${{ parameters.debug ? 'Debug' : 'Release' }} - conditional
- ${{ [1, 2, 3] }} / ${{ {a: 1} }}       - array and object literals

Implementation:
Parsing uses a Lark LALR parser built from grammar.lark. Parsing is pure;
caching of parsed trees (including failures) is owned by CompilationSession.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lark import Lark, Token, Transformer, UnexpectedInput

from pipeline_studio.exceptions import ExpressionSyntaxError

__all__ = [
    "Literal",
    "Identifier",
    "Member",
    "Call",
    "Unary",
    "Binary",
    "Logical",
    "Conditional",
    "ArrayLiteral",
    "ObjectLiteral",
    "ExpressionNode",
    "parse_expression",
]


@dataclass(frozen=True, slots=True)
class Literal:
    """Number, string or null literal."""

    value: Any


@dataclass(frozen=True, slots=True)
class Identifier:
    """Bare name, resolved against the context at evaluation time."""

    name: str


@dataclass(frozen=True, slots=True)
class Member:
    """Property access.

    Attributes:
        object: Expression producing the value being accessed.
        property: Literal name for `a.b`, any expression for `a[b]`.
        computed: True for bracket access.
    """

    object: ExpressionNode
    property: ExpressionNode
    computed: bool = False


@dataclass(frozen=True, slots=True)
class Call:
    """Function or method call."""

    callee: ExpressionNode
    args: tuple[ExpressionNode, ...] = ()


@dataclass(frozen=True, slots=True)
class Unary:
    operator: str
    argument: ExpressionNode


@dataclass(frozen=True, slots=True)
class Binary:
    operator: str
    left: ExpressionNode
    right: ExpressionNode


@dataclass(frozen=True, slots=True)
class Logical:
    """Short-circuiting `&&`, `||` or `??`."""

    operator: str
    left: ExpressionNode
    right: ExpressionNode


@dataclass(frozen=True, slots=True)
class Conditional:
    test: ExpressionNode
    consequent: ExpressionNode
    alternate: ExpressionNode


@dataclass(frozen=True, slots=True)
class ArrayLiteral:
    elements: tuple[ExpressionNode, ...] = ()


@dataclass(frozen=True, slots=True)
class ObjectLiteral:
    properties: tuple[tuple[str, ExpressionNode], ...] = ()


ExpressionNode = (
    Literal
    | Identifier
    | Member
    | Call
    | Unary
    | Binary
    | Logical
    | Conditional
    | ArrayLiteral
    | ObjectLiteral
)


_GRAMMAR_PATH = Path(__file__).parent / "grammar.lark"
_GRAMMAR = _GRAMMAR_PATH.read_text()

_parser = Lark(
    _GRAMMAR,
    parser="lalr",
    start="start",
)

_ESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}


def _unquote(token: str) -> str:
    """Strip quotes and resolve escapes.

    Single-quoted strings only know the doubled-quote escape (`'it''s'`);
    double-quoted strings accept backslash escapes.
    """
    body = token[1:-1]
    if token[0] == "'":
        return body.replace("''", "'")
    return _ESCAPE_PATTERN.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


def _to_number(text: str) -> int | float:
    if re.fullmatch(r"\d+", text):
        return int(text)
    value = float(text)
    return int(value) if value.is_integer() and "e" not in text.lower() else value


class _ExpressionTransformer(Transformer[Token, ExpressionNode]):
    """Transform the Lark parse tree into ExpressionNode objects."""

    def conditional(self, items: list[ExpressionNode]) -> Conditional:
        return Conditional(test=items[0], consequent=items[1], alternate=items[2])

    def logical(self, items: list[Any]) -> Logical:
        left, operator, right = items
        return Logical(operator=str(operator), left=left, right=right)

    def binary(self, items: list[Any]) -> Binary:
        left, operator, right = items
        return Binary(operator=str(operator), left=left, right=right)

    def unary(self, items: list[Any]) -> Unary:
        operator, argument = items
        return Unary(operator=str(operator), argument=argument)

    def member(self, items: list[Any]) -> Member:
        return Member(object=items[0], property=Literal(str(items[1])))

    def computed_member(self, items: list[ExpressionNode]) -> Member:
        return Member(object=items[0], property=items[1], computed=True)

    def call(self, items: list[Any]) -> Call:
        args = items[1] if len(items) > 1 else []
        return Call(callee=items[0], args=tuple(args))

    def arguments(self, items: list[ExpressionNode]) -> list[ExpressionNode]:
        return list(items)

    def number(self, items: list[Token]) -> Literal:
        return Literal(_to_number(str(items[0])))

    def string(self, items: list[Token]) -> Literal:
        return Literal(_unquote(str(items[0])))

    def identifier(self, items: list[Token]) -> Identifier:
        return Identifier(str(items[0]))

    def array(self, items: list[Any]) -> ArrayLiteral:
        elements = items[0] if items else []
        return ArrayLiteral(elements=tuple(elements))

    def object(self, items: list[Any]) -> ObjectLiteral:
        properties = items[0] if items else []
        return ObjectLiteral(properties=tuple(properties))

    def properties(
        self, items: list[tuple[str, ExpressionNode]]
    ) -> list[tuple[str, ExpressionNode]]:
        return list(items)

    def property(self, items: list[Any]) -> tuple[str, ExpressionNode]:
        key_token, value = items
        key = str(key_token)
        if key_token.type == "STRING":
            key = _unquote(key)
        return key, value


def parse_expression(text: str) -> ExpressionNode:
    """Parse expression text (without the `${{ }}` delimiters).

    Args:
        text: Expression source, e.g. `eq(parameters.env, 'prod')`.

    Returns:
        The root ExpressionNode.

    Raises:
        ExpressionSyntaxError: If the text is not a valid expression.

    Examples:
        >>> parse_expression("parameters.name")
        Member(object=Identifier(name='parameters'), property=Literal(value='name'), computed=False)
    """
    try:
        tree = _parser.parse(text)
    except UnexpectedInput as e:
        position = getattr(e, "pos_in_stream", None)
        if not isinstance(position, int) or position < 0:
            position = len(text)
        raise ExpressionSyntaxError(
            "Invalid expression syntax",
            expression=text,
            position=position,
        ) from e

    node: ExpressionNode = _ExpressionTransformer().transform(tree)
    return node
