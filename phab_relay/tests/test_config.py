from __future__ import annotations

from pathlib import Path

import pytest

from phab_relay.config import ConfigError, Settings, load_settings, parse_bool


def _env(**extra: str) -> dict[str, str]:
    env = {
        "SYNAPSE_PHAB_URL": "https://phab.example/",
        "SYNAPSE_PHAB_TOKEN": "api-abc",
        "SYNAPSE_HOST": "https://matrix.example",
        "SYNAPSE_API_TOKEN": "mx-token",
        "SYNAPSE_FEED_ROOM": "!feed:example",
        "SYNAPSE_FEED_PHIDS": "TASK,USER,PROJ",
        "SYNAPSE_LOOKUP_PHID": "PHID-PSTE-aliases",
        "SYNAPSE_FEED_DEBUG": "true",
        "SYNAPSE_FEED_LOG": "/var/log/",
    }
    env.update(extra)
    return env


def test_environment_populates_settings() -> None:
    settings = load_settings(_env())
    assert settings == Settings(
        phab_url="https://phab.example/",
        phab_token="api-abc",
        matrix_host="https://matrix.example",
        matrix_token="mx-token",
        room="!feed:example",
        resolve_types=("TASK", "USER", "PROJ"),
        lookup_phid="PHID-PSTE-aliases",
        debug=True,
        log_dir="/var/log/",
    )
    assert settings.phid_query_url == "https://phab.example/api/phid.query"
    assert settings.paste_search_url == "https://phab.example/api/paste.search"


def test_unparsable_debug_flag_falls_back_to_false(caplog: pytest.LogCaptureFixture) -> None:
    settings = load_settings(_env(SYNAPSE_FEED_DEBUG="maybe"))
    assert settings.debug is False
    assert "unable to determine debug setting" in caplog.text


def test_missing_environment_uses_defaults() -> None:
    settings = load_settings({})
    assert settings.listen_port == 8080
    assert settings.resolve_types == ()
    assert settings.debug is False


def test_yaml_file_is_overridden_by_environment(tmp_path: Path) -> None:
    config = tmp_path / "relay.yaml"
    config.write_text(
        "room: '!yaml:example'\n"
        "resolve_types: [TASK, CMIT]\n"
        "listen_port: 9090\n"
        "debug: true\n",
        encoding="utf-8",
    )
    settings = load_settings({"PHAB_RELAY_CONFIG": str(config), "SYNAPSE_FEED_ROOM": "!env:example"})
    assert settings.room == "!env:example"
    assert settings.resolve_types == ("TASK", "CMIT")
    assert settings.listen_port == 9090
    assert settings.debug is True


def test_yaml_schema_errors_are_reported(tmp_path: Path) -> None:
    config = tmp_path / "relay.yaml"
    config.write_text("listen_port: eighty\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="schema error at listen_port"):
        load_settings({}, config_file=config)


def test_missing_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="config file missing"):
        load_settings({}, config_file=tmp_path / "nope.yaml")


def test_bad_port_is_an_error() -> None:
    with pytest.raises(ConfigError):
        load_settings({"PHAB_RELAY_PORT": "http"})


@pytest.mark.parametrize("raw,expected", [("1", True), ("TRUE", True), ("f", False), ("0", False)])
def test_parse_bool(raw: str, expected: bool) -> None:
    assert parse_bool(raw) is expected
