"""Tests for configuration loading, rule matching and live reload."""

import time
from unittest.mock import MagicMock

import pytest

from acme_watch.config import (
    Config, ConfigStore, FormatterRule, _ConfigFileHandler, find_config_file,
    normalize_pattern,
)
from acme_watch.errors import ConfigError


SAMPLE_YAML = """\
diff: builtin
formatter_timeout: 30
formatters:
  - match: [.go]
    cmd: gofmt
  - match: ["*.py", "*.pyi"]
    cmd: black
    args: [-q, "-"]
  - match: ["*.py"]
    cmd: yapf
  - match: [.rs]
    cmd: rustfmt
    args: [--emit, stdout, $name]
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ("ACMEWATCH_ACME_ROOT", "ACMEWATCH_DIFF", "ACMEWATCH_LOG_LEVEL",
                "ACMEWATCH_LOG_FILE", "ACMEWATCH_FORMATTER_TIMEOUT"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "acmewatch.yaml"
    path.write_text(SAMPLE_YAML)
    return path


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

class TestFormatterRule:
    @pytest.mark.parametrize("pattern,expected", [
        (".go", "*.go"),
        ("*.py", "*.py"),
        ("Makefile", "Makefile"),
        (".*rc", ".*rc"),
    ])
    def test_normalize_pattern(self, pattern, expected):
        assert normalize_pattern(pattern) == expected

    def test_extension_matches_basename(self):
        rule = FormatterRule(match=[".go"], cmd="gofmt")
        assert rule.matches("/home/glenda/src/main.go")
        assert not rule.matches("/home/glenda/src/main.goo")
        assert not rule.matches("/home/glenda/src.go/README")

    def test_full_path_pattern(self):
        rule = FormatterRule(match=["/src/*/BUILD"], cmd="buildifier")
        assert rule.matches("/src/app/BUILD")
        assert not rule.matches("/other/app/BUILD")

    def test_full_path_wildcard_stays_in_one_directory(self):
        rule = FormatterRule(match=["/src/*.go"], cmd="gofmt")
        assert rule.matches("/src/a.go")
        assert not rule.matches("/src/sub/a.go")

    def test_command_with_stdin(self):
        rule = FormatterRule(match=[".go"], cmd="gofmt")
        assert rule.command("/p/a.go") == (["gofmt"], True)

    def test_command_with_name(self):
        rule = FormatterRule(match=[".rs"], cmd="rustfmt", args=["--emit", "stdout", "$name"])
        assert rule.command("/p/a.rs") == (["rustfmt", "--emit", "stdout", "/p/a.rs"], False)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestConfig:
    def test_defaults(self):
        cfg = Config()
        assert cfg.ACME_ROOT == "/mnt/acme"
        assert cfg.DIFF == "diff"
        assert cfg.FORMATTER_TIMEOUT is None
        assert cfg.LOG_LEVEL == "INFO"
        assert cfg.FORMATTERS == []
        assert cfg.find_formatter("/a.go") is None

    def test_load_yaml(self, config_file):
        cfg = Config.load(str(config_file))
        assert cfg.PATH == str(config_file)
        assert cfg.DIFF == "builtin"
        assert cfg.FORMATTER_TIMEOUT == 30.0
        assert [r.cmd for r in cfg.FORMATTERS] == ["gofmt", "black", "yapf", "rustfmt"]

    def test_first_match_wins(self, config_file):
        cfg = Config.load(str(config_file))
        assert cfg.find_formatter("/src/app.py").cmd == "black"
        assert cfg.find_formatter("/src/main.go").cmd == "gofmt"
        assert cfg.find_formatter("/src/notes.md") is None

    def test_env_beats_yaml(self, config_file, monkeypatch):
        monkeypatch.setenv("ACMEWATCH_DIFF", "9 diff")
        assert Config.load(str(config_file)).DIFF == "9 diff"

    def test_override_beats_env(self, config_file, monkeypatch):
        monkeypatch.setenv("ACMEWATCH_DIFF", "9 diff")
        cfg = Config.load(str(config_file), overrides={"diff": "diff -a", "acme_root": None})
        assert cfg.DIFF == "diff -a"
        assert cfg.ACME_ROOT == "/mnt/acme"

    def test_diff_as_list(self):
        assert Config({"diff": ["9", "diff"]}).DIFF == ["9", "diff"]

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            Config.load(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "acmewatch.yaml"
        path.write_text("formatters: [unclosed\n")
        with pytest.raises(ConfigError):
            Config.load(str(path))

    @pytest.mark.parametrize("yaml_data", [
        {"formatters": {"cmd": "gofmt"}},
        {"formatters": [{"match": [".go"]}]},
        {"formatters": [{"match": [".go"], "cmd": "gofmt", "args": "-s"}]},
        {"formatter_timeout": "soon"},
    ])
    def test_invalid_values(self, yaml_data):
        with pytest.raises(ConfigError):
            Config(yaml_data)

    def test_single_match_string(self):
        cfg = Config({"formatters": [{"match": ".go", "cmd": "gofmt"}]})
        assert cfg.FORMATTERS[0].match == ["*.go"]

    def test_find_in_xdg_config_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        (tmp_path / "acmewatch.yml").write_text("diff: builtin\n")
        assert find_config_file() == str(tmp_path / "acmewatch.yml")

    def test_no_config_anywhere(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        assert find_config_file() is None
        assert Config.load().PATH is None


# ---------------------------------------------------------------------------
# Live reload
# ---------------------------------------------------------------------------

def _modified(path) -> MagicMock:
    return MagicMock(is_directory=False, src_path=str(path))


class TestConfigStore:
    def test_snapshot_is_stable_until_invalidated(self, config_file):
        store = ConfigStore.open(str(config_file))
        first = store.snapshot()
        config_file.write_text("diff: diff\n")
        assert store.snapshot() is first

    def test_reload_after_modification(self, config_file):
        store = ConfigStore.open(str(config_file))
        config_file.write_text("diff: diff\nformatters: []\n")

        _ConfigFileHandler(store).on_modified(_modified(config_file))

        cfg = store.snapshot()
        assert cfg.DIFF == "diff"
        assert cfg.FORMATTERS == []

    def test_moved_into_place(self, config_file):
        """Editors that save via rename produce a move event."""
        store = ConfigStore.open(str(config_file))
        config_file.write_text("diff: diff\n")
        event = MagicMock(is_directory=False, src_path="/tmp/x", dest_path=str(config_file))
        _ConfigFileHandler(store).on_moved(event)
        assert store.snapshot().DIFF == "diff"

    def test_other_files_ignored(self, config_file, tmp_path):
        store = ConfigStore.open(str(config_file))
        config_file.write_text("diff: diff\n")
        _ConfigFileHandler(store).on_modified(_modified(tmp_path / "other.yaml"))
        assert store.snapshot().DIFF == "builtin"

    def test_bad_reload_keeps_previous(self, config_file, caplog):
        store = ConfigStore.open(str(config_file))
        config_file.write_text("formatters: [unclosed\n")
        store.invalidate()
        with caplog.at_level("ERROR", logger="acme_watch"):
            cfg = store.snapshot()
        assert cfg.DIFF == "builtin"
        assert "keeping previous configuration" in caplog.text

    def test_overrides_survive_reload(self, config_file):
        store = ConfigStore.open(str(config_file), overrides={"diff": "9 diff"})
        store.invalidate()
        assert store.snapshot().DIFF == "9 diff"

    def test_start_and_stop(self, config_file):
        store = ConfigStore.open(str(config_file))
        store.start()
        try:
            assert store._observer is not None
        finally:
            store.stop()
        assert store._observer is None

    def test_missing_file_tracks_default_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        store = ConfigStore.open()
        assert store.path == str(tmp_path / "xdg" / "acmewatch.yaml")
        assert store.snapshot().FORMATTERS == []

    def test_file_created_after_start(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        store = ConfigStore.open()
        store.start()
        try:
            assert store._observer is not None
            assert (tmp_path / "xdg").is_dir()
            target = tmp_path / "xdg" / "acmewatch.yaml"
            target.write_text(SAMPLE_YAML)

            _ConfigFileHandler(store).on_created(_modified(target))

            assert store.snapshot().find_formatter("/x/a.go").cmd == "gofmt"
        finally:
            store.stop()

    def test_file_created_after_start_is_noticed(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        store = ConfigStore.open()
        store.start()
        try:
            (tmp_path / "xdg" / "acmewatch.yaml").write_text(SAMPLE_YAML)
            deadline = time.monotonic() + 10
            rule = None
            while rule is None and time.monotonic() < deadline:
                time.sleep(0.05)
                rule = store.snapshot().find_formatter("/x/a.go")
            assert rule is not None and rule.cmd == "gofmt"
        finally:
            store.stop()

    def test_file_created_before_start(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        store = ConfigStore.open()
        (tmp_path / "acmewatch.yaml").write_text(SAMPLE_YAML)
        store.start()
        try:
            assert store.snapshot().DIFF == "builtin"
        finally:
            store.stop()

    def test_removed_file_keeps_previous(self, config_file):
        store = ConfigStore.open(str(config_file))
        config_file.unlink()
        store.invalidate()
        assert store.snapshot().DIFF == "builtin"
