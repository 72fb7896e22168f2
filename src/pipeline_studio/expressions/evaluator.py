"""Expression evaluator for `${{ }}` compile-time expressions.

The evaluator resolves expression text against an ExecutionContext:

- Identifiers resolve through loop locals, then parameters, then variables,
  then the root names `parameters`/`variables`/`resources`/`locals`.
- Member access on UNDEFINED or null short-circuits to UNDEFINED.
- A property missing at the first level of a member chain is UNDEFINED; a
  property missing deeper down on an existing mapping or list is `''`.
- Text that does not parse is returned literally, unless it looks like a
  dotted or indexed context path, which then resolves (or is UNDEFINED).
- String interpolation replaces each `${{ }}` occurrence with the rendered
  value; an unresolved `parameters.X` becomes the runtime form `$(X)`.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pipeline_studio.expressions.functions import call_builtin
from pipeline_studio.expressions.parser import (
    ArrayLiteral,
    Binary,
    Call,
    Conditional,
    ExpressionNode,
    Identifier,
    Literal,
    Logical,
    Member,
    ObjectLiteral,
    Unary,
)
from pipeline_studio.expressions.session import CompilationSession
from pipeline_studio.expressions.values import (
    UNDEFINED,
    AliasedList,
    ExpressionBool,
    compare_values,
    is_number,
    normalize_number,
    to_boolean,
    to_display_string,
    to_number,
)
from pipeline_studio.logging import get_logger

if TYPE_CHECKING:
    from pipeline_studio.expansion.context import ExecutionContext

__all__ = [
    "ExpressionEvaluator",
    "EXPRESSION_PATTERN",
    "is_full_expression",
    "strip_expression_delimiters",
]

logger = get_logger(__name__)

EXPRESSION_PATTERN = re.compile(r"\$\{\{\s*(.+?)\s*\}\}")
_CONTEXT_PATH = re.compile(r"^[a-zA-Z_]\w*[.\[]")
_UNRESOLVED_PARAMETER = re.compile(r"^parameters\.([A-Za-z_][\w.\-]*)$")
_BRACKET_INDEX = re.compile(r"\[(\d+)\]")
_BRACKET_KEY = re.compile(r"\[(?:'|\")([^'\"]+)(?:'|\")\]")
_ROOT_NAMES = ("parameters", "variables", "resources", "locals")


def is_full_expression(text: str) -> bool:
    """True when text is exactly one `${{ ... }}` with nothing around it."""
    if not (text.startswith("${{") and text.endswith("}}")):
        return False
    return "}}" not in text[3:-2]


def strip_expression_delimiters(text: str) -> str:
    return text[3:-2].strip()


def _is_absent(value: Any) -> bool:
    return value is None or value is UNDEFINED


def _lookup(target: Any, key: Any) -> tuple[bool, Any]:
    """Read `key` from a mapping, list or string.

    Returns:
        (found, value). Missing keys report found=False.
    """
    if isinstance(key, float) and key.is_integer():
        key = int(key)

    if isinstance(target, list):
        if key == "length":
            return True, len(target)
        index: int | None = None
        if isinstance(key, int) and not isinstance(key, bool):
            index = key
        elif isinstance(key, str) and key.isdigit():
            index = int(key)
        if index is not None:
            if 0 <= index < len(target):
                return True, target[index]
            return False, UNDEFINED
        if isinstance(target, AliasedList) and isinstance(key, str):
            entry = target.lookup(key)
            return entry is not None, entry if entry is not None else UNDEFINED
        return False, UNDEFINED

    if isinstance(target, Mapping):
        if key in target:
            return True, target[key]
        text_key = to_display_string(key) if not isinstance(key, str) else key
        if text_key in target:
            return True, target[text_key]
        return False, UNDEFINED

    if isinstance(target, str):
        if key == "length":
            return True, len(target)
        if isinstance(key, int) and not isinstance(key, bool):
            if 0 <= key < len(target):
                return True, target[key]
        return False, UNDEFINED

    return False, UNDEFINED


def _read_member(target: Any, key: Any, depth: int) -> Any:
    """Member access honouring the first-level/deeper-level asymmetry."""
    if _is_absent(target) or _is_absent(key):
        return UNDEFINED
    found, value = _lookup(target, key)
    if found:
        return value
    if depth >= 2 and isinstance(target, Mapping | list):
        return ""
    return UNDEFINED


class ExpressionEvaluator:
    """Evaluates `${{ }}` expression text against an ExecutionContext.

    Attributes:
        session: Compilation session owning the parse cache and counters.

    Example:
        ```python
        evaluator = ExpressionEvaluator(CompilationSession())
        evaluator.evaluate("eq(parameters.env, 'prod')", context)
        evaluator.interpolate("deploy-${{ parameters.env }}", context)
        ```
    """

    def __init__(self, session: CompilationSession | None = None) -> None:
        self.session = session or CompilationSession()

    def evaluate(self, text: str | None, context: ExecutionContext) -> Any:
        """Evaluate expression text (without delimiters).

        Args:
            text: Expression source.
            context: Lookup environment.

        Returns:
            The evaluated value; UNDEFINED when nothing resolved. Text that
            does not parse and does not look like a context path is returned
            as-is.
        """
        if text is None:
            return UNDEFINED
        expression = str(text).strip()
        if not expression:
            return UNDEFINED

        node = self.session.parse(expression)
        if node is not None:
            return self.evaluate_node(node, context)

        resolved = self.resolve_context_value(expression, context)
        if resolved is not UNDEFINED:
            return resolved

        if _CONTEXT_PATH.match(expression):
            return UNDEFINED

        return expression

    def interpolate(self, text: str, context: ExecutionContext) -> str:
        """Replace every embedded `${{ }}` with its rendered value.

        Lines left holding only whitespace after an expression collapsed to
        nothing are emptied but keep their line break.
        """
        if "${{" not in text:
            return text

        lines = text.splitlines(keepends=True)
        rendered: list[str] = []
        for line in lines:
            if "${{" not in line:
                rendered.append(line)
                continue
            replaced = EXPRESSION_PATTERN.sub(
                lambda match: self._render_match(match.group(1), context), line
            )
            body = replaced.rstrip("\r\n")
            if not body.strip(" \t") and body:
                replaced = replaced[len(body) :]
            rendered.append(replaced)
        return "".join(rendered)

    def _render_match(self, expression: str, context: ExecutionContext) -> str:
        value = self.evaluate(expression, context)
        if value is UNDEFINED:
            unresolved = _UNRESOLVED_PARAMETER.match(expression.strip())
            if unresolved:
                return f"$({unresolved.group(1)})"
        return to_display_string(value)

    def evaluate_node(self, node: ExpressionNode, context: ExecutionContext) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Identifier):
            return self.resolve_identifier(node.name, context)
        if isinstance(node, Member):
            return self._evaluate_member(node, context)
        if isinstance(node, Call):
            return self._evaluate_call(node, context)
        if isinstance(node, Unary):
            return self._evaluate_unary(
                node.operator, self.evaluate_node(node.argument, context)
            )
        if isinstance(node, Binary):
            return self._evaluate_binary(
                node.operator,
                self.evaluate_node(node.left, context),
                self.evaluate_node(node.right, context),
            )
        if isinstance(node, Logical):
            return self._evaluate_logical(node, context)
        if isinstance(node, Conditional):
            if to_boolean(self.evaluate_node(node.test, context)):
                return self.evaluate_node(node.consequent, context)
            return self.evaluate_node(node.alternate, context)
        if isinstance(node, ArrayLiteral):
            return [self.evaluate_node(element, context) for element in node.elements]
        if isinstance(node, ObjectLiteral):
            return {
                key: self.evaluate_node(value, context)
                for key, value in node.properties
            }
        return UNDEFINED

    def resolve_identifier(self, name: str, context: ExecutionContext) -> Any:
        """Resolve a bare name.

        Order: keyword literals, loop locals, parameters, variables, then the
        root maps by name.
        """
        lowered = name.lower()
        if lowered == "true":
            return ExpressionBool.TRUE
        if lowered == "false":
            return ExpressionBool.FALSE
        if lowered == "null":
            return None
        if lowered == "undefined":
            return UNDEFINED

        for scope in (context.locals, context.parameters, context.variables):
            if name in scope:
                return scope[name]

        if name in _ROOT_NAMES:
            return getattr(context, name)
        return UNDEFINED

    def resolve_context_value(self, path: str, context: ExecutionContext) -> Any:
        """Resolve a dotted path for text the parser rejected.

        `a[0]` and `a['b']` are read as `a.0` and `a.b`. The same
        first-level/deeper-level rule as member access applies.
        """
        sanitized = _BRACKET_KEY.sub(r".\1", _BRACKET_INDEX.sub(r".\1", path))
        segments = [segment for segment in sanitized.split(".") if segment]
        if not segments:
            return UNDEFINED

        first, rest = segments[0], segments[1:]
        if first in context.locals:
            root = context.locals[first]
        elif first in _ROOT_NAMES:
            root = getattr(context, first)
        elif first in context.parameters:
            root = context.parameters[first]
        elif first in context.variables:
            root = context.variables[first]
        else:
            return UNDEFINED

        value = root
        for depth, segment in enumerate(rest, start=1):
            value = _read_member(value, segment, depth)
        return value

    def _member_depth(self, node: Member) -> int:
        depth = 1
        current = node.object
        while isinstance(current, Member):
            depth += 1
            current = current.object
        return depth

    def _member_key(self, node: Member, context: ExecutionContext) -> Any:
        prop = node.property
        if not node.computed:
            if isinstance(prop, Literal):
                return prop.value
            # `a.b` built by hand with the name as an identifier
            if isinstance(prop, Identifier):
                return prop.name
        return self.evaluate_node(prop, context)

    def _evaluate_member(self, node: Member, context: ExecutionContext) -> Any:
        target = self.evaluate_node(node.object, context)
        key = self._member_key(node, context)
        return _read_member(target, key, self._member_depth(node))

    def _evaluate_call(self, node: Call, context: ExecutionContext) -> Any:
        args = [self.evaluate_node(arg, context) for arg in node.args]
        callee = node.callee

        if isinstance(callee, Identifier):
            return call_builtin(callee.name, args, self.session)

        if isinstance(callee, Member):
            target = self.evaluate_node(callee.object, context)
            name = self._member_key(callee, context)
            if _is_absent(target) or _is_absent(name):
                return UNDEFINED
            method = self._bound_method(target, name)
            if method is not None:
                try:
                    return method(*args)
                except (TypeError, ValueError) as e:
                    logger.debug("method_call_failed", method=name, error=str(e))
                    return UNDEFINED
            return call_builtin(str(name), args, self.session)

        return UNDEFINED

    @staticmethod
    def _bound_method(target: Any, name: Any) -> Any:
        """Public callable attribute of a string or list receiver."""
        if not isinstance(name, str) or name.startswith("_"):
            return None
        if not isinstance(target, str | list):
            return None
        attribute = getattr(target, name, None)
        return attribute if callable(attribute) else None

    def _evaluate_logical(self, node: Logical, context: ExecutionContext) -> Any:
        left = self.evaluate_node(node.left, context)
        if node.operator == "&&":
            return self.evaluate_node(node.right, context) if to_boolean(left) else left
        if node.operator == "||":
            return left if to_boolean(left) else self.evaluate_node(node.right, context)
        if node.operator == "??":
            return self.evaluate_node(node.right, context) if _is_absent(left) else left
        return UNDEFINED

    @staticmethod
    def _evaluate_unary(operator: str, value: Any) -> Any:
        if operator == "!":
            return ExpressionBool.of(not to_boolean(value))
        number = to_number(value)
        if operator == "-":
            number = -number
        return number if math.isnan(number) else normalize_number(number)

    @staticmethod
    def _evaluate_binary(operator: str, left: Any, right: Any) -> Any:
        if operator in ("==", "==="):
            return ExpressionBool.of(compare_values(left, right) == 0)
        if operator in ("!=", "!=="):
            return ExpressionBool.of(compare_values(left, right) != 0)
        if operator == "<":
            return ExpressionBool.of(compare_values(left, right) < 0)
        if operator == "<=":
            return ExpressionBool.of(compare_values(left, right) <= 0)
        if operator == ">":
            return ExpressionBool.of(compare_values(left, right) > 0)
        if operator == ">=":
            return ExpressionBool.of(compare_values(left, right) >= 0)

        if operator == "+" and (isinstance(left, str) or isinstance(right, str)):
            return to_display_string(left) + to_display_string(right)

        a = _numeric_operand(left)
        b = _numeric_operand(right)
        if operator == "+":
            return normalize_number(a + b)
        if operator == "-":
            return normalize_number(a - b)
        if operator == "*":
            return normalize_number(a * b)
        if operator in ("/", "%"):
            if b == 0:
                return UNDEFINED
            result = a / b if operator == "/" else math.fmod(a, b)
            return normalize_number(result)
        return UNDEFINED


def _numeric_operand(value: Any) -> float:
    """Number() with NaN collapsed to 0."""
    if is_number(value):
        return float(value)
    number = to_number(value)
    return 0.0 if math.isnan(number) else number
