import importlib
import logging
import sys

import pytest

from config import Config, DEFAULT_TARGET_ATTRIBUTES, get_logger


@pytest.fixture
def targets_file(tmp_path, monkeypatch):
    path = tmp_path / "targets.yaml"
    monkeypatch.setenv("TARGETS_FILE", str(path))
    return path


def test_defaults_without_targets_file(targets_file):
    cfg = Config()
    assert cfg.TARGET_ATTRIBUTES == DEFAULT_TARGET_ATTRIBUTES
    assert cfg.TARGET_ATTRIBUTES == {"a": "href", "img": "src"}


def test_targets_file_extends_defaults(targets_file):
    targets_file.write_text("targets:\n  IFrame: src\n  video: poster\n")
    cfg = Config()
    assert cfg.TARGET_ATTRIBUTES == {"a": "href", "img": "src", "iframe": "src", "video": "poster"}


def test_targets_file_can_override_default(targets_file):
    targets_file.write_text("targets:\n  img: data-src\n")
    cfg = Config()
    assert cfg.TARGET_ATTRIBUTES["img"] == "data-src"
    assert cfg.TARGET_ATTRIBUTES["a"] == "href"


def test_invalid_entries_are_skipped(targets_file):
    targets_file.write_text("targets:\n  iframe: src\n  embed: 3\n  object: ''\n")
    cfg = Config()
    assert "iframe" in cfg.TARGET_ATTRIBUTES
    assert "embed" not in cfg.TARGET_ATTRIBUTES
    assert "object" not in cfg.TARGET_ATTRIBUTES


@pytest.mark.parametrize("content", ["- a\n- b\n", "targets: [a, b]\n", "targets: {a: [unclosed\n"])
def test_malformed_targets_file_keeps_defaults(targets_file, content):
    targets_file.write_text(content)
    cfg = Config()
    assert cfg.TARGET_ATTRIBUTES == DEFAULT_TARGET_ATTRIBUTES


def test_reload_targets(targets_file):
    cfg = Config()
    assert "iframe" not in cfg.TARGET_ATTRIBUTES
    targets_file.write_text("targets:\n  iframe: src\n")
    cfg.reload_targets()
    assert cfg.TARGET_ATTRIBUTES["iframe"] == "src"


def test_base_url_from_environment(targets_file, monkeypatch):
    monkeypatch.setenv("BASE_URL", "  https://example.org/blog/ ")
    cfg = Config()
    assert cfg.BASE_URL == "https://example.org/blog/"
    summary = cfg.get_config_summary()
    assert summary["base_url"] == "https://example.org/blog/"
    assert summary["targets_file"] == str(targets_file)


def test_get_logger_namespace():
    assert get_logger("absolutify").name == "Absolutify.absolutify"


def test_importing_library_leaves_host_logging_alone(monkeypatch):
    root = logging.getLogger()
    sentinel = logging.NullHandler()
    monkeypatch.setattr(root, "handlers", [sentinel])
    monkeypatch.setattr(root, "level", logging.ERROR)
    for name in ("absolutify", "config", "telemetry", "errors"):
        monkeypatch.delitem(sys.modules, name, raising=False)

    module = importlib.import_module("absolutify")
    module.absolutify('<a href="x">', "not a url")

    assert root.handlers == [sentinel]
    assert root.level == logging.ERROR


def test_importing_library_does_not_load_dotenv(monkeypatch):
    import config as config_module

    calls = []
    monkeypatch.setattr(config_module, "load_dotenv", lambda *a, **k: calls.append(a))
    config_module.Config()
    assert calls == []
