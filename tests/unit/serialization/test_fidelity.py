"""Unit tests for formatting fidelity helpers.

Tests cover:
- QuoteStyleTracker recording, lookup order and restoration
- context_name() precedence
- BlockScalarHints.render()
- insert_heredoc_separators()
"""

from __future__ import annotations

import copy

from pipeline_studio.serialization.fidelity import (
    BlockScalarHints,
    QuoteStyleTracker,
    StyledScalar,
    context_name,
    insert_heredoc_separators,
)


class TestQuoteStyleTracker:
    """Test QuoteStyleTracker."""

    def test_path_lookup_wins(self) -> None:
        tracker = QuoteStyleTracker()
        tracker.record("a.b", None, "b", "x", "'")
        tracker.record("c.b", None, "b", "x", '"')
        assert tracker.style_for("a.b", None, "b", "x") == "'"

    def test_context_lookup(self) -> None:
        tracker = QuoteStyleTracker()
        tracker.record("steps.0.script", "Build", "script", "make", '"', record_path=False)
        assert tracker.style_for("jobs.0.steps.3.script", "Build", "script", "make") == '"'
        assert tracker.style_for("jobs.0.steps.3.script", "Test", "script", "make") is None

    def test_empty_string_fallback_first_writer_wins(self) -> None:
        tracker = QuoteStyleTracker()
        tracker.record("a", None, "a", "", "'")
        tracker.record("b", None, "b", "", '"')
        assert tracker.style_for("zzz", "Other", "zzz", "") == "'"

    def test_glob_fallback(self) -> None:
        tracker = QuoteStyleTracker()
        tracker.record("files", None, "files", "**/*.yml", '"')
        assert tracker.style_for("elsewhere", "Ctx", "pattern", "**/*.yml") == '"'

    def test_unquoted_styles_are_ignored(self) -> None:
        tracker = QuoteStyleTracker()
        tracker.record("a", None, "a", "x", "|")
        assert len(tracker) == 0

    def test_restore(self) -> None:
        tracker = QuoteStyleTracker()
        tracker.record("", "Build", "script", "make", '"', record_path=False)
        tree = {
            "steps": [
                {"displayName": "Build", "script": "make"},
                {"displayName": "Test", "script": "make"},
            ]
        }

        restored = tracker.restore(tree)

        built, tested = restored["steps"]
        assert isinstance(built["script"], StyledScalar)
        assert built["script"].style == '"'
        assert not isinstance(tested["script"], StyledScalar)
        assert not isinstance(tree["steps"][0]["script"], StyledScalar)

    def test_restore_leaves_non_strings(self) -> None:
        tracker = QuoteStyleTracker()
        tracker.record("n", None, "n", "1", '"')
        assert tracker.restore({"n": 1, "flag": True}) == {"n": 1, "flag": True}


class TestStyledScalar:
    """Test StyledScalar."""

    def test_is_a_string(self) -> None:
        scalar = StyledScalar("42", '"')
        assert scalar == "42"
        assert scalar.style == '"'

    def test_copy_keeps_style(self) -> None:
        copied = copy.deepcopy({"a": StyledScalar("x", "'")})
        assert copied["a"].style == "'"


class TestContextName:
    """Test context_name()."""

    def test_display_name_wins(self) -> None:
        assert context_name({"name": "n", "task": "T@1", "displayName": "D"}) == "D"

    def test_task_before_name(self) -> None:
        assert context_name({"name": "n", "task": "T@1"}) == "T@1"

    def test_inherited(self) -> None:
        assert context_name({"script": "x"}, "outer") == "outer"
        assert context_name({"displayName": ""}, "outer") == "outer"


class TestBlockScalarHints:
    """Test BlockScalarHints.render()."""

    def test_default_is_literal(self) -> None:
        assert BlockScalarHints().render("a\nb\n") == ("|", "a\nb\n")

    def test_azure_expression_block_is_folded(self) -> None:
        hints = BlockScalarHints(
            azure_compatible=True, expression_blocks=frozenset({"echo a\necho b"})
        )
        assert hints.render("echo a\necho b\n") == (">", "echo a\necho b\n")

    def test_azure_plain_block_stays_literal(self) -> None:
        hints = BlockScalarHints(azure_compatible=True)
        assert hints.render("a\nb\n") == ("|", "a\nb\n")

    def test_azure_last_line_block_is_chomped(self) -> None:
        hints = BlockScalarHints(
            azure_compatible=True,
            expression_blocks=frozenset({"a\nb"}),
            last_line_blocks=frozenset({"a\nb"}),
        )
        assert hints.render("a\nb\n\n") == (">", "a\nb")

    def test_hints_ignored_outside_azure_mode(self) -> None:
        hints = BlockScalarHints(
            expression_blocks=frozenset({"a\nb"}), last_line_blocks=frozenset({"a\nb"})
        )
        assert hints.render("a\nb\n") == ("|", "a\nb\n")


class TestInsertHeredocSeparators:
    """Test insert_heredoc_separators()."""

    def test_separates_body_lines(self) -> None:
        text = "cat <<EOF > out.txt\nfirst\nsecond\nEOF\necho done"
        assert insert_heredoc_separators(text) == (
            "cat <<EOF > out.txt\nfirst\n\nsecond\nEOF\necho done"
        )

    def test_idempotent(self) -> None:
        text = "cat <<'END'\na\nb\nc\nEND"
        once = insert_heredoc_separators(text)
        assert once == "cat <<'END'\na\n\nb\n\nc\nEND"
        assert insert_heredoc_separators(once) == once

    def test_dash_form_with_indented_terminator(self) -> None:
        text = "cat <<-EOF\n\ta\n\tb\n\tEOF"
        assert insert_heredoc_separators(text) == "cat <<-EOF\n\ta\n\n\tb\n\tEOF"

    def test_unterminated_left_alone(self) -> None:
        text = "cat <<EOF\na\nb"
        assert insert_heredoc_separators(text) == text

    def test_single_line_body_unchanged(self) -> None:
        text = "cat <<EOF\nonly\nEOF"
        assert insert_heredoc_separators(text) == text

    def test_here_strings_are_not_here_docs(self) -> None:
        text = "grep x <<< \"$VALUE\"\na\nb"
        assert insert_heredoc_separators(text) == text

    def test_no_heredoc(self) -> None:
        assert insert_heredoc_separators("echo a\necho b") == "echo a\necho b"
