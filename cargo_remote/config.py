"""Layered configuration for remote builds.

Values come from, in order of priority: explicit command line flags, the
project level ``.cargo-remote.toml``, the user level
``cargo-remote/cargo-remote.toml`` found in the XDG config directories, and
finally the hard-coded defaults below. ``remote`` has no default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from xdg import BaseDirectory

try:  # pragma: no cover - tomllib is stdlib from 3.11 onwards
    import tomllib  # type: ignore
except ModuleNotFoundError:  # pragma: no cover - fallback for 3.10
    import tomli as tomllib  # type: ignore

from .models import BuildOptions, CopyBack

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".cargo-remote.toml"
USER_CONFIG_DIR = "cargo-remote"
USER_CONFIG_NAME = "cargo-remote.toml"

DEFAULTS: Dict[str, Any] = {
    "build-env": ["RUST_BACKTRACE=1"],
    "rustup-default": "stable",
    "env": "/etc/profile",
    "copy-back": None,
    "copy-lock": True,
    "transfer-hidden": False,
}


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


_VALIDATORS: Dict[str, Callable[[Any], bool]] = {
    "remote": lambda value: isinstance(value, str) and bool(value),
    "build-env": _is_str_list,
    "rustup-default": lambda value: isinstance(value, str),
    "env": lambda value: isinstance(value, str),
    "copy-back": lambda value: isinstance(value, (bool, str)),
    "copy-lock": lambda value: isinstance(value, bool),
    "transfer-hidden": lambda value: isinstance(value, bool),
}


class ConfigError(RuntimeError):
    """Raised when a required option is missing from every source."""


class ConfigSourceError(RuntimeError):
    """Raised when a configuration file exists but cannot be read or parsed."""


@dataclass
class ConfigSource:
    """One parsed configuration file. ``values`` is None when the file is absent."""

    path: Path
    values: Optional[Dict[str, Any]] = None

    @classmethod
    def from_file(cls, path: str | Path) -> "ConfigSource":
        path = Path(path)
        try:
            raw_text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return cls(path=path)
        except OSError as exc:
            raise ConfigSourceError(f"Can't read config file '{path}' (error: {exc})") from exc
        except UnicodeDecodeError as exc:
            raise ConfigSourceError(f"Can't parse config file '{path}' (error: {exc})") from exc
        try:
            data = tomllib.loads(raw_text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigSourceError(f"Can't parse config file '{path}' (error: {exc})") from exc
        return cls(path=path, values=data)

    @property
    def present(self) -> bool:
        return self.values is not None

    def lookup(self, key: str) -> Optional[Any]:
        if self.values is None or key not in self.values:
            return None
        value = self.values[key]
        validator = _VALIDATORS.get(key)
        if validator is not None and not validator(value):
            logger.warning(
                "Ignoring '%s' in config file '%s': unexpected value %r", key, self.path, value
            )
            return None
        return value


def load_config_source(path: str | Path) -> ConfigSource:
    """Load a source, degrading missing or broken files to an absent source."""

    try:
        source = ConfigSource.from_file(path)
    except ConfigSourceError as exc:
        logger.warning("%s", exc)
        return ConfigSource(path=Path(path))
    if not source.present:
        logger.debug("Config file '%s' not found", path)
    return source


def config_search_paths(project_root: str | Path) -> List[Path]:
    paths = [Path(project_root) / PROJECT_CONFIG_NAME]
    user_config = BaseDirectory.load_first_config(USER_CONFIG_DIR, USER_CONFIG_NAME)
    if user_config:
        paths.append(Path(user_config))
    return paths


def load_config_sources(project_root: str | Path) -> List[ConfigSource]:
    return [load_config_source(path) for path in config_search_paths(project_root)]


def lookup_option(
    key: str,
    override: Optional[Any],
    sources: Sequence[ConfigSource],
) -> Optional[Any]:
    if override is not None:
        return override
    for source in sources:
        value = source.lookup(key)
        if value is not None:
            logger.debug("Using '%s' from %s", key, source.path)
            return value
    return DEFAULTS.get(key)


def resolve_options(
    overrides: Mapping[str, Any],
    sources: Sequence[ConfigSource],
    pass_through_args: Sequence[str] = (),
) -> BuildOptions:
    """Merge explicit overrides with the configuration sources.

    ``overrides`` is keyed like the config files; a missing key or a None
    value means the flag was not given on the command line.
    """

    def pick(key: str) -> Optional[Any]:
        return lookup_option(key, overrides.get(key), sources)

    build_server = pick("remote")
    if not build_server:
        raise ConfigError("No remote build server was defined (use config file or --remote flag)")

    return BuildOptions(
        build_server=build_server,
        build_env=tuple(pick("build-env")),
        toolchain=pick("rustup-default"),
        env_profile=pick("env"),
        copy_back=CopyBack.from_value(pick("copy-back")),
        copy_lock=pick("copy-lock"),
        transfer_hidden=pick("transfer-hidden"),
        pass_through_args=tuple(pass_through_args),
    )
