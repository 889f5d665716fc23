# infrastructure/config/settings.py
"""
Recorder settings.

Sources, lowest precedence first:
  1. defaults below
  2. YAML file named by HARLOG_CONFIG (top-level keys = field names)
  3. HARLOG_* environment variables, with `.env` at the project root loaded first;
     unknown HARLOG_* names are ignored, unknown YAML keys are errors
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from application.services.body_capture import DEFAULT_MAX_MULTIPART_BYTES
from domain.exceptions import ConfigError

ENV_PREFIX = "HARLOG_"
CONFIG_ENV = ENV_PREFIX + "CONFIG"

_env_path = Path(__file__).parent.parent.parent / ".env"


@dataclass(frozen=True)
class RecorderSettings:
    output_path: str = "results.har"
    flush_interval_sec: float = 5.0
    host: str = "0.0.0.0"
    port: int = 6060
    upstream: str = ""
    server_side: bool = False
    headers_file: Optional[str] = None
    override_headers: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    creator_name: Optional[str] = None
    creator_version: Optional[str] = None
    comment: Optional[str] = None
    max_multipart_bytes: int = DEFAULT_MAX_MULTIPART_BYTES
    request_timeout_sec: float = 30.0
    log_level: str = "INFO"
    log_file: Optional[str] = None


_BOOL_TRUE = {"1", "true", "yes", "on"}
_BOOL_FALSE = {"0", "false", "no", "off", ""}
_OPTIONAL = {"headers_file", "creator_name", "creator_version", "comment", "log_file"}


def _coerce(name: str, kind: type, raw: Any) -> Any:
    if raw is None:
        if name in _OPTIONAL:
            return None
        raise ConfigError(f"Missing value for {name}")
    try:
        if kind is bool:
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().lower()
            if text in _BOOL_TRUE:
                return True
            if text in _BOOL_FALSE:
                return False
            raise ValueError(f"not a boolean: {raw!r}")
        if kind is int:
            return int(raw)
        if kind is float:
            return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from exc
    return str(raw)


_KINDS: Dict[str, type] = {
    "output_path": str,
    "flush_interval_sec": float,
    "host": str,
    "port": int,
    "upstream": str,
    "server_side": bool,
    "headers_file": str,
    "creator_name": str,
    "creator_version": str,
    "comment": str,
    "max_multipart_bytes": int,
    "request_timeout_sec": float,
    "log_level": str,
    "log_file": str,
}


def parse_header_lines(text: str) -> Tuple[Tuple[str, str], ...]:
    """`Name: value` lines; blank lines are skipped, anything else malformed is an error."""
    pairs = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            raise ConfigError(f"Malformed header line {lineno}: {line!r}")
        pairs.append((name.strip(), value.strip()))
    return tuple(pairs)


def load_header_file(path: str) -> Tuple[Tuple[str, str], ...]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read headers file {path}: {exc}") from exc
    return parse_header_lines(text)


def _load_yaml(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file is invalid: {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file is invalid: {path}")
    return data


def _apply(values: Dict[str, Any], source: Mapping[str, Any], kinds: Dict[str, type]) -> None:
    for name, raw in source.items():
        if name == "override_headers":
            if isinstance(raw, Mapping):
                values[name] = tuple((str(k), str(v)) for k, v in raw.items())
            elif isinstance(raw, str):
                values[name] = parse_header_lines(raw)
            else:
                raise ConfigError(f"Invalid value for override_headers: {raw!r}")
            continue
        if name not in kinds:
            raise ConfigError(f"Unknown setting: {name}")
        values[name] = _coerce(name, kinds[name], raw)


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[Path] = None,
) -> RecorderSettings:
    if environ is None:
        dotenv_path = env_file or _env_path
        if dotenv_path.exists():
            load_dotenv(dotenv_path)
        environ = os.environ

    kinds = _KINDS
    values: Dict[str, Any] = {}

    config_path = environ.get(CONFIG_ENV)
    if config_path:
        _apply(values, _load_yaml(config_path), kinds)

    # unknown HARLOG_* names are skipped; YAML keys stay strict
    from_env: Dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or key == CONFIG_ENV:
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in kinds or name == "override_headers":
            from_env[name] = value
    _apply(values, from_env, kinds)

    settings = replace(RecorderSettings(), **values)
    if settings.headers_file:
        file_headers = load_header_file(settings.headers_file)
        settings = replace(settings, override_headers=settings.override_headers + file_headers)

    if settings.flush_interval_sec < 0:
        raise ConfigError("flush_interval_sec must not be negative")
    if settings.max_multipart_bytes <= 0:
        raise ConfigError("max_multipart_bytes must be positive")
    if not (0 < settings.port < 65536):
        raise ConfigError(f"port out of range: {settings.port}")
    return settings
