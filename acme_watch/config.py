"""
Configuration — loads settings from acmewatch.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).

Example ``~/.config/acmewatch.yaml``::

    diff: diff
    formatters:
      - match: [.go]
        cmd: gofmt
      - match: ["*.py"]
        cmd: black
        args: [-q, -]
      - match: [.rs]
        cmd: rustfmt
        args: [--emit, stdout, $name]
"""

from __future__ import annotations

import fnmatch
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Optional

import yaml
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .acme import DEFAULT_ACME_ROOT
from .errors import ConfigError

logger = logging.getLogger(__name__)

NAME_ARG = "$name"

_DEFAULTS = {
    "acme_root": DEFAULT_ACME_ROOT,
    "diff": "diff",
    "formatter_timeout": None,
    "log_level": "INFO",
    "log_file": None,
}

# Config file search locations
_CONFIG_FILENAMES = ["acmewatch.yaml", "acmewatch.yml"]


@dataclass
class FormatterRule:
    """One ``match → command`` entry, tried in config order."""
    match: list[str]
    cmd: str
    args: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.match = [normalize_pattern(m) for m in self.match]

    def matches(self, path: str) -> bool:
        """Return True if any of the rule's patterns matches *path*.

        ``*.ext`` patterns are tried against the file name; anything else
        against the whole path, where wildcards never match a ``/``.
        """
        for pattern in self.match:
            if pattern.startswith("*."):
                if fnmatch.fnmatchcase(os.path.basename(path), pattern):
                    return True
            elif _match_segments(path, pattern):
                return True
        return False

    def command(self, path: str) -> tuple[list[str], bool]:
        """Return ``(argv, use_stdin)`` for formatting *path*.

        An argument equal to ``$name`` is replaced by *path*, and the file
        is then not piped to the formatter's standard input.
        """
        use_stdin = True
        argv = [self.cmd]
        for arg in self.args:
            if arg == NAME_ARG:
                argv.append(path)
                use_stdin = False
            else:
                argv.append(arg)
        return argv, use_stdin


def _match_segments(path: str, pattern: str) -> bool:
    names = path.split("/")
    parts = pattern.split("/")
    if len(names) != len(parts):
        return False
    return all(fnmatch.fnmatchcase(n, p) for n, p in zip(names, parts))


def normalize_pattern(pattern: str) -> str:
    """Turn a bare extension such as ``.go`` into ``*.go``."""
    if pattern.startswith(".") and "*" not in pattern:
        return "*" + pattern
    return pattern


def _config_dirs() -> list[str]:
    dirs = []
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        dirs.append(xdg)
    dirs.append(os.path.join(os.path.expanduser("~"), ".config"))
    return dirs


def default_config_path() -> str:
    """Where a new config file is looked for when none exists yet."""
    return os.path.join(_config_dirs()[0], _CONFIG_FILENAMES[0])


def find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, then the XDG config dirs."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    for d in _config_dirs():
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def load_yaml(path: str) -> dict:
    """Load a YAML mapping from *path*.

    Raises
    ------
    ConfigError
        If the file cannot be read or is not a YAML mapping.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot load {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at top level")
    return data


def _parse_rules(raw, source: str) -> list[FormatterRule]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{source}: 'formatters' must be a list")

    rules: list[FormatterRule] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict) or not entry.get("cmd"):
            raise ConfigError(f"{source}: formatter #{i + 1} needs a 'cmd'")
        match = entry.get("match", [])
        if isinstance(match, str):
            match = [match]
        args = entry.get("args") or []
        if not isinstance(match, list) or not isinstance(args, list):
            raise ConfigError(
                f"{source}: formatter #{i + 1}: 'match' and 'args' must be lists"
            )
        rules.append(FormatterRule(
            match=[str(m) for m in match],
            cmd=str(entry["cmd"]),
            args=[str(a) for a in args],
        ))
    return rules


class Config:
    """Application configuration snapshot.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. acmewatch.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None, path: str | None = None,
                 overrides: dict | None = None):
        yd = yaml_data or {}
        ov = overrides or {}
        self.PATH = path
        source = path or "<defaults>"

        # Helper: override > env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            if ov.get(yaml_key) is not None:
                return ov[yaml_key]
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return yaml_val if isinstance(yaml_val, list) else cast(yaml_val)
            return default

        try:
            self.ACME_ROOT = _get("ACMEWATCH_ACME_ROOT", "acme_root",
                                  _DEFAULTS["acme_root"])
            self.DIFF = _get("ACMEWATCH_DIFF", "diff", _DEFAULTS["diff"])
            self.FORMATTER_TIMEOUT: Optional[float] = _get(
                "ACMEWATCH_FORMATTER_TIMEOUT", "formatter_timeout",
                _DEFAULTS["formatter_timeout"], cast=float)
        except ValueError as exc:
            raise ConfigError(f"{source}: {exc}") from exc
        self.LOG_LEVEL = _get("ACMEWATCH_LOG_LEVEL", "log_level",
                              _DEFAULTS["log_level"]).upper()
        self.LOG_FILE = _get("ACMEWATCH_LOG_FILE", "log_file",
                             _DEFAULTS["log_file"])

        self.FORMATTERS = _parse_rules(yd.get("formatters"), source)

    def find_formatter(self, path: str) -> FormatterRule | None:
        """Return the first rule matching *path*, or None."""
        for rule in self.FORMATTERS:
            if rule.matches(path):
                return rule
        return None

    @classmethod
    def load(cls, config_path: str | None = None,
             overrides: dict | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults.

        Raises
        ------
        ConfigError
            If an explicit *config_path* does not exist, or the file found
            is malformed.
        """
        path = find_config_file(config_path)
        if config_path and path is None:
            raise ConfigError(f"config file not found: {config_path}")
        if path is None:
            return cls(overrides=overrides)
        return cls(load_yaml(path), path=path, overrides=overrides)


class _ConfigFileHandler(FileSystemEventHandler):
    """Mark the store stale when its file is written or replaced."""

    def __init__(self, store: "ConfigStore") -> None:
        self._store = store

    def _check(self, path) -> None:
        if os.path.abspath(os.fsdecode(path)) == self._store.path:
            self._store.invalidate()

    def on_modified(self, event):
        if not event.is_directory:
            self._check(event.src_path)

    def on_created(self, event):
        if not event.is_directory:
            self._check(event.src_path)

    def on_moved(self, event):
        if not event.is_directory:
            self._check(event.dest_path)


class ConfigStore:
    """Holds the current :class:`Config` and reloads it when the file changes.

    The watch loop asks for :meth:`snapshot` once per event and passes that
    snapshot down explicitly. A watchdog observer on the config directory
    flags the snapshot as stale; the reload itself happens lazily on the
    next :meth:`snapshot` call, on the caller's thread.

    Usage::

        store = ConfigStore.open(args.config)
        store.start()
        cfg = store.snapshot()
        store.stop()
    """

    def __init__(self, config: Config, path: str | None = None,
                 overrides: dict | None = None) -> None:
        self._config = config
        self._overrides = overrides or {}
        self.path = os.path.abspath(path) if path else None
        self._stale = False
        self._lock = threading.Lock()
        self._observer: Optional[Observer] = None

    @classmethod
    def open(cls, config_path: str | None = None,
             overrides: dict | None = None) -> "ConfigStore":
        """Load the initial snapshot; raises :class:`ConfigError` on failure.

        *overrides* (CLI arguments, keyed like the YAML file) win over every
        other source, on every reload.
        """
        config = Config.load(config_path, overrides)
        path = config.PATH
        if path:
            logger.info("[Config] Read %s", path)
        else:
            path = default_config_path()
            logger.warning("[Config] No acmewatch.yaml found; no formatters "
                           "configured until %s is created", path)
        return cls(config, path, overrides)

    def invalidate(self) -> None:
        with self._lock:
            self._stale = True

    def snapshot(self) -> Config:
        """Return the current config, reloading it first if it changed."""
        with self._lock:
            stale, self._stale = self._stale, False
        if stale and self.path:
            if not os.path.isfile(self.path):
                logger.debug("[Config] %s is gone; keeping previous configuration",
                             self.path)
                return self._config
            try:
                self._config = Config(load_yaml(self.path), path=self.path,
                                      overrides=self._overrides)
                logger.info("[Config] Reloaded %s", self.path)
            except ConfigError as exc:
                logger.error("[Config] %s; keeping previous configuration", exc)
        return self._config

    def start(self) -> None:
        """Start watching the config file's directory in the background.

        The directory is created if needed, so a config file written after
        startup is still picked up.
        """
        if self.path is None or self._observer is not None:
            return
        watch_dir = os.path.dirname(self.path)
        try:
            os.makedirs(watch_dir, exist_ok=True)
        except OSError as exc:
            logger.warning("[Config] Cannot watch %s: %s", watch_dir, exc)
            return
        # Created between open() and now.
        if self._config.PATH is None and os.path.isfile(self.path):
            self.invalidate()
        observer = Observer()
        observer.schedule(_ConfigFileHandler(self), watch_dir, recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.debug("[Config] Watching %s", self.path)

    def stop(self) -> None:
        """Stop the config watcher."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=2)
        self._observer = None
