"""Tests for sandbox config loading."""

import json
import os
import stat

import pytest

from agentbox.config.settings import Settings
from agentbox.policy import (
    ConfigError,
    SandboxConfig,
    get_config,
    load_config,
    load_config_from_command,
    load_config_from_file,
    load_config_from_json,
    save_config_to_file,
)
from agentbox.policy.loader import find_config_command

CONFIG_DATA = {
    "filesystem": {
        "denyRead": ["~/.ssh", ".env"],
        "allowWrite": ["."],
        "denyWrite": [".git"],
    },
    "network": {
        "allowedDomains": ["*.github.com"],
        "deniedDomains": [],
    },
}


def make_settings(**kwargs) -> Settings:
    """Settings isolated from the test runner's environment."""
    values = {
        "AGENTBOX_CONFIG_PATH": None,
        "AGENTBOX_CONFIG_COMMAND": None,
        "AGENTBOX_SANDBOX_SHELL_PATTERN": r"opencode-shell$",
    }
    values.update(kwargs)
    return Settings(_env_file=None, **values)


def write_script(path, body: str):
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return path


class TestParseConfig:
    """Tests for config validation."""

    def test_camel_case_keys(self):
        """Test external camelCase keys are accepted."""
        config = load_config_from_json(json.dumps(CONFIG_DATA))
        assert config.filesystem.deny_read == ("~/.ssh", ".env")
        assert config.network.allowed_domains == ("*.github.com",)

    def test_missing_sections_default_empty(self):
        """Test missing sections and lists default to empty."""
        config = load_config_from_json('{"filesystem": {"denyRead": ["/x"]}}')
        assert config.filesystem.allow_write == ()
        assert config.network.allowed_domains == ()

    def test_invalid_json(self):
        """Test malformed JSON is a config error."""
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config_from_json("{not json")

    def test_wrong_shape(self):
        """Test a wrongly typed list is a config error."""
        with pytest.raises(ConfigError, match="Invalid sandbox configuration"):
            load_config_from_json('{"filesystem": {"denyRead": 5}}')

    def test_not_a_mapping(self):
        """Test a non-object document is a config error."""
        with pytest.raises(ConfigError, match="mapping"):
            load_config_from_json("[1, 2]")


class TestLoadFromFile:
    """Tests for file-based loading."""

    def test_yaml_file(self, tmp_path):
        """Test loading a YAML config file."""
        path = tmp_path / "agentbox.yaml"
        path.write_text(
            """
filesystem:
  denyRead: [~/.aws]
  allowWrite: [build]
network:
  allowedDomains: [pypi.org]
"""
        )
        config = load_config_from_file(path)
        assert config.filesystem.allow_write == ("build",)
        assert config.network.allowed_domains == ("pypi.org",)

    def test_json_file(self, tmp_path):
        """Test JSON files load through the same path."""
        path = tmp_path / "box.json"
        path.write_text(json.dumps(CONFIG_DATA))
        assert load_config_from_file(path).filesystem.deny_write == (".git",)

    def test_missing_file(self, tmp_path):
        """Test a missing file is a config error."""
        with pytest.raises(ConfigError, match="not found"):
            load_config_from_file(tmp_path / "nope.yaml")

    def test_directory(self, tmp_path):
        """Test a directory path is a config error."""
        with pytest.raises(ConfigError, match="not a file"):
            load_config_from_file(tmp_path)

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML is a config error."""
        path = tmp_path / "bad.yaml"
        path.write_text("filesystem: [unclosed")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config_from_file(path)

    def test_save_round_trip_keys(self, tmp_path):
        """Test saved configs use the external key names."""
        path = tmp_path / "out" / "config.yaml"
        save_config_to_file(load_config_from_json(json.dumps(CONFIG_DATA)), path)
        text = path.read_text()
        assert "denyRead" in text
        assert "allowedDomains" in text
        assert load_config_from_file(path).filesystem.deny_read == ("~/.ssh", ".env")


@pytest.mark.skipif(os.name != "posix", reason="requires a POSIX shell")
class TestLoadFromCommand:
    """Tests for print-config command loading."""

    def test_prints_config(self, tmp_path):
        """Test stdout JSON is loaded."""
        script = write_script(
            tmp_path / "box-shell",
            f"[ \"$1\" = print-config ] && echo '{json.dumps(CONFIG_DATA)}'",
        )
        config = load_config_from_command(str(script))
        assert config.network.allowed_domains == ("*.github.com",)

    def test_stderr_is_error(self, tmp_path):
        """Test any stderr output is reported as a config error."""
        script = write_script(tmp_path / "box-shell", "echo 'box.json: bad key' >&2")
        with pytest.raises(ConfigError, match="box.json: bad key"):
            load_config_from_command(str(script))

    def test_nonzero_exit(self, tmp_path):
        """Test a failing command is a config error."""
        script = write_script(tmp_path / "box-shell", "exit 3")
        with pytest.raises(ConfigError, match="status 3"):
            load_config_from_command(str(script))

    def test_missing_command(self, tmp_path):
        """Test a missing executable is a config error."""
        with pytest.raises(ConfigError, match="Cannot run"):
            load_config_from_command(str(tmp_path / "missing"))


class TestConfigSources:
    """Tests for config source precedence."""

    def test_config_path_first(self, tmp_path):
        """Test AGENTBOX_CONFIG_PATH wins over the command."""
        path = tmp_path / "c.json"
        path.write_text(json.dumps(CONFIG_DATA))
        settings = make_settings(AGENTBOX_CONFIG_PATH=str(path), AGENTBOX_CONFIG_COMMAND="/nonexistent")
        config, source = load_config(settings)
        assert source == str(path)
        assert isinstance(config, SandboxConfig)

    def test_sandbox_shell_detected(self, monkeypatch):
        """Test $SHELL is used when it looks like the sandbox shell."""
        monkeypatch.setenv("SHELL", "/opt/box/bin/opencode-shell")
        assert find_config_command(make_settings()) == "/opt/box/bin/opencode-shell"

    def test_ordinary_shell_ignored(self, monkeypatch):
        """Test an ordinary $SHELL is not run."""
        monkeypatch.setenv("SHELL", "/bin/bash")
        assert find_config_command(make_settings()) is None

    def test_explicit_command_preferred(self, monkeypatch):
        """Test AGENTBOX_CONFIG_COMMAND beats $SHELL."""
        monkeypatch.setenv("SHELL", "/opt/box/bin/opencode-shell")
        settings = make_settings(AGENTBOX_CONFIG_COMMAND="/usr/local/bin/box")
        assert find_config_command(settings) == "/usr/local/bin/box"

    def test_default_path(self, tmp_path, monkeypatch):
        """Test ./agentbox.yaml is found in the working directory."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SHELL", "/bin/bash")
        (tmp_path / "agentbox.yaml").write_text("network:\n  allowedDomains: [a.com]\n")
        config, source = load_config(make_settings())
        assert config.network.allowed_domains == ("a.com",)
        assert source.endswith("agentbox.yaml")

    def test_no_source(self, tmp_path, monkeypatch):
        """Test having no source at all is a config error."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("SHELL", "/bin/bash")
        with pytest.raises(ConfigError, match="No sandbox config"):
            load_config(make_settings())


class TestGetConfig:
    """Tests for the non-raising get_config."""

    def test_ok_and_resolved(self, tmp_path):
        """Test a good config is resolved against the project root."""
        path = tmp_path / "c.json"
        path.write_text(json.dumps(CONFIG_DATA))
        result = get_config(make_settings(AGENTBOX_CONFIG_PATH=str(path)), "/project")
        assert result.ok is True
        assert result.error is None
        assert result.config.filesystem.deny_write == ("/project/.git",)
        assert result.config.filesystem.allow_write == ("/project",)

    def test_error_reported_not_raised(self, tmp_path):
        """Test failures are reported as not ok."""
        path = tmp_path / "c.json"
        path.write_text("{broken")
        result = get_config(make_settings(AGENTBOX_CONFIG_PATH=str(path)), "/project")
        assert result.ok is False
        assert result.config is None
        assert result.error.startswith("Config error:")

    def test_undecodable_file_reported(self, tmp_path):
        """Test a config file that is not UTF-8 is reported as not ok."""
        path = tmp_path / "agentbox.yaml"
        path.write_bytes(b"filesystem:\n  denyRead: ['\xff\xfe']\n")
        result = get_config(make_settings(AGENTBOX_CONFIG_PATH=str(path)), "/project")
        assert result.ok is False
        assert "UTF-8" in result.error

    @pytest.mark.skipif(os.name != "posix", reason="requires a POSIX shell")
    def test_undecodable_command_output_reported(self, tmp_path):
        """Test print-config output that is not UTF-8 is reported as not ok."""
        script = write_script(tmp_path / "box-shell", "printf '\\377\\376'")
        result = get_config(make_settings(AGENTBOX_CONFIG_COMMAND=str(script)), "/project")
        assert result.ok is False
        assert "UTF-8" in result.error
