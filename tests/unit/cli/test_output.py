"""Unit tests for CLI output formatting, exit codes and context."""

from __future__ import annotations

import logging

from pipeline_studio.cli.context import CLIContext, ExitCode
from pipeline_studio.cli.output import format_config_error, format_error
from pipeline_studio.config import StudioConfig
from pipeline_studio.exceptions import ConfigError


class TestFormatError:
    """Tests for format_error()."""

    def test_message_only(self) -> None:
        assert format_error("Template file not found: a.yml") == (
            "Error: Template file not found: a.yml"
        )

    def test_details_and_suggestion(self) -> None:
        result = format_error(
            "Template file not found: a.yml",
            details=["File: main.yml"],
            suggestion="Check the path relative to the including file",
        )

        assert result == (
            "Error: Template file not found: a.yml\n"
            "  File: main.yml\n"
            "Suggestion: Check the path relative to the including file"
        )


class TestFormatConfigError:
    """Tests for format_config_error()."""

    def test_includes_field_and_value(self) -> None:
        error = ConfigError("Invalid configuration", field="verbosity", value="loud")

        assert format_config_error(error) == (
            "Error: Invalid configuration\n  Field: verbosity\n  Value: loud"
        )

    def test_without_field(self) -> None:
        assert format_config_error(ConfigError("Config file not found: x.yaml")) == (
            "Error: Config file not found: x.yaml"
        )


class TestExitCode:
    """Tests for ExitCode values."""

    def test_values(self) -> None:
        assert ExitCode.SUCCESS == 0
        assert ExitCode.FAILURE == 1
        assert ExitCode.INTERRUPTED == 130


class TestCLIContextLogLevel:
    """Tests for CLIContext.log_level."""

    def test_defaults_to_configured_verbosity(self) -> None:
        assert (
            CLIContext(config=StudioConfig(verbosity="warning")).log_level
            == logging.WARNING
        )
        assert (
            CLIContext(config=StudioConfig(verbosity="debug")).log_level
            == logging.DEBUG
        )

    def test_verbose_flags(self) -> None:
        config = StudioConfig(verbosity="error")
        assert CLIContext(config=config, verbosity=1).log_level == logging.INFO
        assert CLIContext(config=config, verbosity=3).log_level == logging.DEBUG

    def test_quiet_wins(self) -> None:
        context = CLIContext(
            config=StudioConfig(verbosity="debug"), verbosity=2, quiet=True
        )
        assert context.log_level == logging.ERROR
