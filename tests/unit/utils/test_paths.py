"""Unit tests for configured path resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from pipeline_studio.utils.paths import resolve_configured_path


class TestResolveConfiguredPath:
    """Tests for resolve_configured_path()."""

    def test_blank_is_none(self) -> None:
        assert resolve_configured_path("   ") is None

    def test_absolute_path(self) -> None:
        assert resolve_configured_path("/srv/templates") == Path("/srv/templates")

    def test_relative_to_workspace(self) -> None:
        assert resolve_configured_path("../templates", Path("/work/app")) == Path(
            "/work/templates"
        )

    def test_relative_to_document_dir(self) -> None:
        result = resolve_configured_path("templates", document_dir=Path("/docs"))
        assert result == Path("/docs/templates")

    def test_relative_to_cwd(
        self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(temp_dir)
        assert resolve_configured_path("templates") == temp_dir / "templates"

    def test_workspace_folder_placeholder(self) -> None:
        result = resolve_configured_path("${workspaceFolder}/shared", Path("/work"))
        assert result == Path("/work/shared")

    def test_env_placeholders(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEMPLATES_ROOT", "/opt/templates")
        assert resolve_configured_path("${env:TEMPLATES_ROOT}/v2") == Path(
            "/opt/templates/v2"
        )
        assert resolve_configured_path("${TEMPLATES_ROOT}") == Path("/opt/templates")

    def test_unknown_variable_is_empty(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        assert resolve_configured_path("/base${NOT_SET_ANYWHERE}/t") == Path("/base/t")

    def test_home_expansion(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOME", str(temp_dir))
        assert resolve_configured_path("~/templates") == temp_dir / "templates"

    def test_path_is_normalized(self) -> None:
        result = resolve_configured_path("/a/./b/../c")
        assert result == Path("/a/c")
