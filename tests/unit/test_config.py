from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def isolated_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at a temporary directory so no real user config is read."""
    home = temp_dir / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


def test_load_defaults_when_no_config(
    clean_env: None, temp_dir: Path, isolated_home: Path
) -> None:
    """Test that defaults are used when no config file exists."""
    import os

    os.chdir(temp_dir)

    from pipeline_studio.config import StudioConfig, load_config

    config = load_config()
    assert isinstance(config, StudioConfig)
    assert config.resource_locations == {}
    assert config.azure_compatible is False
    assert config.verbosity == "warning"


def test_load_project_config(
    clean_env: None, temp_dir: Path, isolated_home: Path
) -> None:
    """Test loading configuration from pipeline-studio.yaml."""
    import os

    os.chdir(temp_dir)
    (temp_dir / "pipeline-studio.yaml").write_text(
        "resource_locations:\n  templates: ../templates\nazure_compatible: true\n"
    )

    from pipeline_studio.config import load_config

    config = load_config()
    assert config.resource_locations == {"templates": "../templates"}
    assert config.azure_compatible is True


def test_project_config_overrides_user_config(
    clean_env: None, temp_dir: Path, isolated_home: Path
) -> None:
    """Test that the project file wins over the user file."""
    import os

    os.chdir(temp_dir)
    user_config = isolated_home / ".config" / "pipeline-studio" / "config.yaml"
    user_config.parent.mkdir(parents=True)
    user_config.write_text("verbosity: debug\nazure_compatible: true\n")
    (temp_dir / "pipeline-studio.yaml").write_text("verbosity: info\n")

    from pipeline_studio.config import load_config

    config = load_config()
    assert config.verbosity == "info"
    assert config.azure_compatible is True


def test_env_var_overrides(
    clean_env: None, temp_dir: Path, isolated_home: Path
) -> None:
    """Test that PIPELINE_STUDIO_* environment variables override config."""
    import os

    os.chdir(temp_dir)
    (temp_dir / "pipeline-studio.yaml").write_text("azure_compatible: false\n")
    os.environ["PIPELINE_STUDIO_AZURE_COMPATIBLE"] = "true"
    os.environ["PIPELINE_STUDIO_VERBOSITY"] = "debug"

    from pipeline_studio.config import load_config

    config = load_config()
    assert config.azure_compatible is True
    assert config.verbosity == "debug"


def test_explicit_config_file_overrides_env(
    clean_env: None, temp_dir: Path, isolated_home: Path
) -> None:
    """Test that a --config file beats environment variables."""
    import os

    os.chdir(temp_dir)
    os.environ["PIPELINE_STUDIO_VERBOSITY"] = "debug"
    explicit = temp_dir / "ci.yaml"
    explicit.write_text("verbosity: error\n")

    from pipeline_studio.config import load_config

    assert load_config(explicit).verbosity == "error"


def test_missing_explicit_config_file(
    clean_env: None, temp_dir: Path, isolated_home: Path
) -> None:
    """Test that a missing --config file raises ConfigError."""
    from pipeline_studio.config import load_config
    from pipeline_studio.exceptions import ConfigError

    with pytest.raises(ConfigError, match="Config file not found"):
        load_config(temp_dir / "absent.yaml")


def test_invalid_config_raises_config_error(
    clean_env: None, temp_dir: Path, isolated_home: Path
) -> None:
    """Test that invalid configuration raises ConfigError."""
    import os

    os.chdir(temp_dir)
    (temp_dir / "pipeline-studio.yaml").write_text("verbosity: loud\n")

    from pipeline_studio.config import load_config
    from pipeline_studio.exceptions import ConfigError

    with pytest.raises(ConfigError) as exc_info:
        load_config()

    assert exc_info.value.field == "verbosity"
    assert exc_info.value.value == "loud"


def test_invalid_yaml_raises_config_error(
    clean_env: None, temp_dir: Path, isolated_home: Path
) -> None:
    """Test that malformed YAML in a config file raises ConfigError."""
    import os

    os.chdir(temp_dir)
    (temp_dir / "pipeline-studio.yaml").write_text("verbosity: [unclosed\n")

    from pipeline_studio.config import load_config
    from pipeline_studio.exceptions import ConfigError

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config()


def test_non_mapping_config_raises_config_error(temp_dir: Path) -> None:
    """Test that a config file holding a list is rejected."""
    from pipeline_studio.config import read_config_file
    from pipeline_studio.exceptions import ConfigError

    path = temp_dir / "list.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ConfigError) as exc_info:
        read_config_file(path)

    assert exc_info.value.value == "list"


def test_empty_config_file(temp_dir: Path) -> None:
    """Test that an empty config file reads as an empty mapping."""
    from pipeline_studio.config import read_config_file

    path = temp_dir / "empty.yaml"
    path.write_text("")

    assert read_config_file(path) == {}


def test_camel_case_keys_in_config_file(
    clean_env: None,
    temp_dir: Path,
    isolated_home: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test settings files may use the same camelCase keys as overrides."""
    monkeypatch.chdir(temp_dir)
    explicit = temp_dir / "ci.yaml"
    explicit.write_text(
        "resourceLocations:\n  shared: ./shared\nazureCompatible: true\n"
    )

    from pipeline_studio.config import load_config

    config = load_config(explicit)
    assert config.resource_locations == {"shared": "./shared"}
    assert config.azure_compatible is True


def test_user_config_path() -> None:
    """Test the user config file location."""
    from pipeline_studio.config import get_user_config_path

    path = get_user_config_path()
    assert path.parts[-3:] == (".config", "pipeline-studio", "config.yaml")


def test_expansion_options_accept_camel_case() -> None:
    """Test that ExpansionOptions reads camelCase and snake_case keys."""
    from pipeline_studio.config import parse_options

    options = parse_options(
        {
            "baseDir": "/work",
            "repository_base_dir": "/repos",
            "resourceLocations": {"templates": "/t", "blank": "  ", "none": None},
            "azureCompatible": True,
            "templateStack": ["caller.yml"],
            "somethingElse": 1,
        }
    )

    assert options.base_dir == Path("/work")
    assert options.repository_base_dir == Path("/repos")
    assert options.resource_locations == {"templates": "/t"}
    assert options.azure_compatible is True
    assert options.template_stack == ["caller.yml"]


def test_expansion_options_defaults() -> None:
    """Test that no overrides yields empty options."""
    from pipeline_studio.config import ExpansionOptions, parse_options

    options = parse_options(None)
    assert options == ExpansionOptions()
    assert options.parameters == {}
    assert options.base_dir is None


def test_expansion_options_passthrough() -> None:
    """Test that an ExpansionOptions instance is returned as is."""
    from pipeline_studio.config import ExpansionOptions, parse_options

    options = ExpansionOptions(parameters={"a": 1})
    assert parse_options(options) is options


def test_invalid_expansion_option() -> None:
    """Test that a wrongly typed option raises ConfigError."""
    from pipeline_studio.config import parse_options
    from pipeline_studio.exceptions import ConfigError

    with pytest.raises(ConfigError) as exc_info:
        parse_options({"parameters": "not-a-mapping"})

    assert exc_info.value.field == "parameters"
    assert "Invalid expansion option" in exc_info.value.message
