"""Tests for layered configuration loading."""

from pathlib import Path

from dsbox.config import load_config


def _write_toml(data_dir: Path, text: str) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "dsbox.toml").write_text(text, encoding="utf-8")


def test_defaults(isolated_config) -> None:
    config = isolated_config
    assert config.ports.max_attempts == 50
    assert config.ports.on_exhausted == "warn"
    assert config.ports.publish_host == "127.0.0.1"
    assert config.container.default_image == "ds-minimal:latest"
    assert config.container.workspace == "/workspace/project"
    assert config.container.user == "developer"
    assert config.container.volumes["ds-conda-cache"] == "/opt/conda/pkgs"
    assert len(config.container.volumes) == 4
    assert config.paths.log_dir == config.paths.data_dir / "logs"


def test_file_overrides_defaults(isolated_config, tmp_path) -> None:
    _write_toml(
        isolated_config.paths.data_dir,
        """
[ports]
max_attempts = 10
on_exhausted = "abort"

[paths]
projects_dir = "%s"

[container]
user = "jovyan"

[container.volumes]
my-cache = "/cache"

[profiles.gpu]
image = "ds-gpu:latest"
services = { jupyter = 8888 }
"""
        % tmp_path.as_posix(),
    )
    config = load_config()
    assert config.ports.max_attempts == 10
    assert config.ports.on_exhausted == "abort"
    assert config.paths.projects_dir == tmp_path
    assert config.container.user == "jovyan"
    assert config.container.volumes == {"my-cache": "/cache"}
    assert config.profiles["gpu"]["image"] == "ds-gpu:latest"


def test_env_overrides_file(isolated_config, monkeypatch) -> None:
    _write_toml(isolated_config.paths.data_dir, "[ports]\nmax_attempts = 10\n")
    monkeypatch.setenv("DSBOX_PORT_MAX_ATTEMPTS", "7")
    monkeypatch.setenv("DSBOX_IMAGE", "ds-extended:latest")
    monkeypatch.setenv("DSBOX_PUBLISH_HOST", "0.0.0.0")
    config = load_config()
    assert config.ports.max_attempts == 7
    assert config.container.default_image == "ds-extended:latest"
    assert config.ports.publish_host == "0.0.0.0"


def test_bad_values_fall_back(isolated_config, monkeypatch) -> None:
    monkeypatch.setenv("DSBOX_PORT_MAX_ATTEMPTS", "lots")
    monkeypatch.setenv("DSBOX_ON_EXHAUSTED", "explode")
    config = load_config()
    assert config.ports.max_attempts == 50
    assert config.ports.on_exhausted == "warn"


def test_broken_toml_is_ignored(isolated_config) -> None:
    _write_toml(isolated_config.paths.data_dir, "[ports\nmax_attempts = ")
    assert load_config().ports.max_attempts == 50


def test_wrongly_typed_file_values_fall_back(isolated_config) -> None:
    _write_toml(
        isolated_config.paths.data_dir,
        """
profiles = "gpu"

[ports]
max_attempts = "10"
on_exhausted = 5
publish_host = 1

[container]
user = ""
volumes = "ds-conda-cache"
""",
    )
    config = load_config()
    assert config.ports.max_attempts == 50
    assert config.ports.on_exhausted == "warn"
    assert config.ports.publish_host == "127.0.0.1"
    assert config.container.user == "developer"
    assert len(config.container.volumes) == 4
    assert config.profiles == {}
