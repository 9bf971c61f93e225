import json

import pytest
from loguru import logger

import icreactor
from icreactor.cache import QueryCache
from icreactor.config.access import clear_config_cache
from icreactor.utils.logging_utils import add_file_sink, disable_logging, enable_logging


@pytest.fixture
def restore_logger():
    yield
    disable_logging()


def _invalidate_one():
    cache = QueryCache()
    cache.set(("k",), 1)
    cache.invalidate(("k",))


def test_package_is_silent_by_default():
    messages = []
    sink_id = logger.add(messages.append, level="DEBUG")
    try:
        _invalidate_one()
    finally:
        logger.remove(sink_id)
    assert messages == []
    assert icreactor.__version__


def test_enable_logging_and_file_sink(tmp_path, restore_logger):
    enable_logging("DEBUG")
    path = add_file_sink(tmp_path / "logs" / "icreactor.log", level="DEBUG")
    assert add_file_sink(path) == path
    _invalidate_one()
    logger.complete()
    assert "Invalidated 1 cached queries" in path.read_text()


def test_host_sinks_survive_enable_logging(capsys, restore_logger):
    messages = []
    host_id = logger.add(messages.append, level="DEBUG")
    try:
        enable_logging("DEBUG")
        enable_logging("DEBUG")
        _invalidate_one()
    finally:
        logger.remove(host_id)
    assert any("Invalidated 1 cached queries" in m for m in messages)
    # The second call replaced the first stderr sink instead of stacking another.
    assert capsys.readouterr().err.count("Invalidated 1 cached queries") == 1


def test_enable_logging_defaults_to_configured_level(tmp_path, monkeypatch, capsys, restore_logger):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"logLevel": "DEBUG"}))
    monkeypatch.setenv("ICREACTOR_CONFIG_PATH", str(path))
    clear_config_cache()
    try:
        enable_logging()
        _invalidate_one()
    finally:
        clear_config_cache()
    assert "Invalidated 1 cached queries" in capsys.readouterr().err


def test_disable_logging_silences_again(capsys, restore_logger):
    enable_logging("DEBUG")
    disable_logging()
    _invalidate_one()
    assert capsys.readouterr().err == ""
