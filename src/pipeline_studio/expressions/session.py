"""Compilation session: state that outlives a single evaluation.

A session owns the parsed-expression cache and the sequence map behind the
stateful `counter()` function. Both persist across every expansion run on
the same session; use a fresh session (or call reset()) for isolated runs.
"""

from __future__ import annotations

from pipeline_studio.exceptions import ExpressionSyntaxError
from pipeline_studio.expressions.parser import ExpressionNode, parse_expression
from pipeline_studio.logging import get_logger

__all__ = ["CompilationSession"]

logger = get_logger(__name__)


class CompilationSession:
    """Lifetime-scoped parser cache and counter state.

    Example:
        ```python
        session = CompilationSession()
        session.parse("eq(1, 1)")        # parsed and cached
        session.parse("eq(1, 1)")        # served from cache
        session.parse("a b")             # None, cached as a failure
        ```
    """

    def __init__(self) -> None:
        self._ast_cache: dict[str, ExpressionNode | None] = {}
        self._counters: dict[str, int] = {}

    def parse(self, text: str) -> ExpressionNode | None:
        """Parse expression text, caching successes and failures alike.

        Args:
            text: Expression source without delimiters.

        Returns:
            The parsed tree, or None when the text is not a valid expression.
        """
        if text in self._ast_cache:
            return self._ast_cache[text]

        node: ExpressionNode | None
        try:
            node = parse_expression(text)
        except ExpressionSyntaxError as e:
            logger.debug("expression_parse_failed", expression=text, error=e.message)
            node = None

        self._ast_cache[text] = node
        return node

    def next_counter(self, key: str, seed: int) -> int:
        """Return the current value for `key` and advance it.

        The seed is only used the first time a key is seen.
        """
        current = self._counters.setdefault(key, seed)
        self._counters[key] = current + 1
        return current

    @property
    def cached_expression_count(self) -> int:
        return len(self._ast_cache)

    def reset(self) -> None:
        """Drop every cached parse result and counter."""
        self._ast_cache.clear()
        self._counters.clear()
