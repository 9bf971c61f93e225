import json
import os

import pytest

from conftest import LEDGER_ID, DictVerifier, PickleWire, ScriptedTransport

from icreactor.agent.polling import PollingPolicy, TieredPollingPolicy
from icreactor.client import ClientManager
from icreactor.config.access import clear_config_cache, get_config
from icreactor.config.loader import camel_to_snake, convert_keys, get_config_path, load_config, save_config
from icreactor.config.schema import PollingConfig, ReactorConfig


def test_defaults_when_file_missing(tmp_path):
    config = load_config(tmp_path / "missing.json")
    assert config.lenient_arg_transform is True
    assert config.polling.strategy == "backoff"


def test_load_camel_case_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "lenientArgTransform": False,
        "polling": {"strategy": "tiered", "fastAttempts": 3, "deadlineMs": 1000},
        "canisters": {"myLedger": "ryjl3-tyaaa-aaaaa-aaaba-cai"},
    }))
    config = load_config(path)
    assert config.lenient_arg_transform is False
    assert config.polling.fast_attempts == 3
    # Canister names are not converted.
    assert config.canisters == {"myLedger": "ryjl3-tyaaa-aaaaa-aaaba-cai"}


def test_malformed_file_raises_with_path(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ValueError) as exc_info:
        load_config(path)
    assert str(path) in str(exc_info.value)


def test_save_and_reload(tmp_path):
    path = tmp_path / "nested" / "config.json"
    save_config(ReactorConfig(log_level="DEBUG", canisters={"ledger": "aaaaa-aa"}), path)
    assert json.loads(path.read_text())["logLevel"] == "DEBUG"
    assert load_config(path).canisters == {"ledger": "aaaaa-aa"}


def test_cached_access(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"logLevel": "WARNING"}))
    clear_config_cache()
    first = get_config(config_path=path)
    assert get_config(config_path=path) is first
    path.write_text(json.dumps({"logLevel": "ERROR"}))
    assert get_config(config_path=path, force_reload=True).log_level == "ERROR"
    clear_config_cache(config_path=path)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("ICREACTOR_POLLING__DEADLINE_MS", "1234")
    monkeypatch.setenv("ICREACTOR_LENIENT_ARG_TRANSFORM", "false")
    config = ReactorConfig()
    assert config.polling.deadline_ms == 1234
    assert config.lenient_arg_transform is False


def test_polling_config_builds_policies():
    assert isinstance(PollingConfig().to_policy(), PollingPolicy)
    tiered = PollingConfig(strategy="tiered", plateau_delay_ms=2_000).to_policy()
    assert isinstance(tiered, TieredPollingPolicy)
    assert tiered.plateau_delay_ms == 2_000


def test_key_conversion():
    assert camel_to_snake("maxIntervalMs") == "max_interval_ms"
    assert convert_keys({"pollingConfig": [{"jitterRatio": 1}]}) == {"polling_config": [{"jitter_ratio": 1}]}


def test_config_path_env_override(tmp_path, monkeypatch):
    path = tmp_path / "custom.json"
    monkeypatch.setenv("ICREACTOR_CONFIG_PATH", str(path))
    assert get_config_path() == path


def test_changed_file_is_reloaded(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"logLevel": "WARNING"}))
    clear_config_cache()
    assert get_config(config_path=path).log_level == "WARNING"
    path.write_text(json.dumps({"logLevel": "ERROR"}))
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
    assert get_config(config_path=path).log_level == "ERROR"
    path.unlink()
    assert get_config(config_path=path).log_level == "INFO"
    clear_config_cache()


def test_client_manager_defaults_to_shared_config(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"canisters": {"ledger": LEDGER_ID.to_text()}}))
    monkeypatch.setenv("ICREACTOR_CONFIG_PATH", str(path))
    clear_config_cache()
    try:
        manager = ClientManager(ScriptedTransport(), PickleWire(), DictVerifier())
        assert manager.config is get_config()
        assert manager.resolve_canister_id("ledger") == LEDGER_ID
    finally:
        clear_config_cache()
