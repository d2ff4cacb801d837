from pathlib import Path

import pytest
from pydantic import ValidationError

from plugin_shell.core.config import Config, ConfigManager, get_config, reload_config


def test_defaults(monkeypatch) -> None:
    for key in ("LOG_LEVEL", "PROMPT", "PLUGIN_DIR", "FUEL_PER_CALL", "AUTOLOAD"):
        monkeypatch.delenv(key, raising=False)

    config = Config()

    assert config.log_level == "INFO"
    assert config.prompt == ">> "
    assert config.plugin_dir == "./plugins"
    assert config.autoload == []
    assert config.fuel_per_call is None


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("FUEL_PER_CALL", "5000")

    config = Config()

    assert config.log_level == "DEBUG"
    assert config.fuel_per_call == 5000


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        Config(LOG_LEVEL="LOUD")
    with pytest.raises(ValidationError):
        Config(FUEL_PER_CALL=0)


def test_from_toml_flattens_sections(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        '[logging]\nlevel = "warning"\nfile = "logs/shell.log"\n\n'
        '[shell]\nprompt = "$ "\n\n'
        '[plugins]\ndir = "wasm"\nautoload = ["plugin_ie.wat"]\nfuel_per_call = 1000000\n'
    )

    config = Config.from_toml(path)

    assert config.log_level == "WARNING"
    assert config.log_file == "logs/shell.log"
    assert config.prompt == "$ "
    assert config.plugin_dir == "wasm"
    assert config.autoload == ["plugin_ie.wat"]
    assert config.fuel_per_call == 1_000_000


def test_resolve_plugin(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    plugin_dir = tmp_path / "wasm"
    plugin_dir.mkdir()
    (plugin_dir / "demo.wasm").write_bytes(b"")
    (tmp_path / "local.wasm").write_bytes(b"")
    config = Config(PLUGIN_DIR=str(plugin_dir))

    assert config.resolve_plugin("local.wasm") == Path("local.wasm")
    assert config.resolve_plugin("demo.wasm") == plugin_dir.resolve() / "demo.wasm"
    assert config.resolve_plugin("missing.wasm") == Path("missing.wasm")


def test_config_manager_reads_toml_file(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('[shell]\nprompt = "one> "\n')

    assert ConfigManager(path).get().prompt == "one> "
    assert ConfigManager(tmp_path / "missing.toml").get().prompt == ">> "


def test_reload_config_picks_up_changes(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "config.toml"
    monkeypatch.setenv("PLUGIN_SHELL_CONFIG", str(path))
    path.write_text('[shell]\nprompt = "one> "\n')

    assert reload_config().prompt == "one> "
    assert get_config().prompt == "one> "

    path.write_text('[shell]\nprompt = "two> "\n')
    reload_config()

    assert get_config().prompt == "two> "
