"""Configuration of the vulnerability scanner and parsing of its options."""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from pathlib import Path
from typing import Any

import yaml

SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_HIGH = "HIGH"
SEVERITY_MEDIUM = "MEDIUM"
SEVERITY_LOW = "LOW"
SEVERITY_UNKNOWN = "UNKNOWN"

VULN_TYPE_OS = "os"
VULN_TYPE_LIBRARY = "library"

SECURITY_CHECK_VULN = "vuln"
SECURITY_CHECK_CONFIG = "config"
SECURITY_CHECK_SECRET = "secret"


class ScanStatus(IntEnum):
    """Outcome of scanning one image."""

    FAILED = 0
    NON_COMPLIANT = 1
    OK = 2


@dataclass
class VulnConfig:
    """Which vulnerabilities make an image non-compliant."""

    ignore_unfixed: bool = False
    types: list[str] = field(default_factory=list)
    security_checks: list[str] = field(default_factory=list)
    severities: list[str] = field(default_factory=list)


@dataclass
class TimeoutConfig:
    """Scan time limits, in seconds."""

    total: float = 0.0
    per_image: float = 0.0


@dataclass
class Config:
    """Scanner configuration."""

    cache_dir: str = ""
    db_repo: str = ""
    delete_failed_images: bool = False
    delete_eol_images: bool = False
    vulnerabilities: VulnConfig = field(default_factory=VulnConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)


def default_config() -> Config:
    """Return the configuration used when none is given."""
    return Config(
        cache_dir="/var/lib/trivy",
        db_repo="ghcr.io/aquasecurity/trivy-db",
        delete_failed_images=True,
        delete_eol_images=True,
        vulnerabilities=VulnConfig(
            ignore_unfixed=True,
            types=[VULN_TYPE_OS, VULN_TYPE_LIBRARY],
            security_checks=[SECURITY_CHECK_VULN],
            severities=[SEVERITY_CRITICAL, SEVERITY_HIGH, SEVERITY_MEDIUM, SEVERITY_LOW],
        ),
        timeout=TimeoutConfig(total=23 * 3600.0, per_image=3600.0),
    )


_UNIT_NS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``1h30m`` or ``300ms`` into seconds."""
    if not isinstance(text, str):
        raise ValueError(f"duration must be a string, got {type(text).__name__}")
    rest = text
    sign = 1
    if rest[:1] in ("+", "-"):
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return 0.0
    if not rest:
        raise ValueError(f'time: invalid duration "{text}"')
    total = Decimal(0)
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        if match is None:
            raise ValueError(f'time: invalid duration "{text}"')
        total += Decimal(match.group(1)) * _UNIT_NS[match.group(2)]
        pos = match.end()
    return float(sign * total / Decimal(1_000_000_000))


def _as_str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _as_bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean")
    return value


def _as_str_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{key} must be a list of strings")
    return list(value)


def _as_duration(value: Any, key: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as err:
        raise ValueError(f"{key}: {err}") from None


_Spec = Mapping[str, tuple[str, Callable[[Any, Any, str], Any]]]


def _scalar(convert: Callable[[Any, str], Any]) -> Callable[[Any, Any, str], Any]:
    def apply(current: Any, value: Any, key: str) -> Any:
        if value is None:
            return current
        return convert(value, key)

    return apply


def _list(current: Any, value: Any, key: str) -> Any:
    if value is None:
        return []
    return _as_str_list(value, key)


def _nested(spec: _Spec) -> Callable[[Any, Any, str], Any]:
    def apply(current: Any, value: Any, key: str) -> Any:
        if value is None:
            return current
        if not isinstance(value, Mapping):
            raise ValueError(f"{key} must be a mapping")
        _merge(current, value, spec)
        return current

    return apply


_VULN_SPEC: _Spec = {
    "ignoreUnfixed": ("ignore_unfixed", _scalar(_as_bool)),
    "types": ("types", _list),
    "securityChecks": ("security_checks", _list),
    "severities": ("severities", _list),
}

_TIMEOUT_SPEC: _Spec = {
    "total": ("total", _scalar(_as_duration)),
    "perImage": ("per_image", _scalar(_as_duration)),
}

_CONFIG_SPEC: _Spec = {
    "cacheDir": ("cache_dir", _scalar(_as_str)),
    "dbRepo": ("db_repo", _scalar(_as_str)),
    "deleteFailedImages": ("delete_failed_images", _scalar(_as_bool)),
    "deleteEOLImages": ("delete_eol_images", _scalar(_as_bool)),
    "vulnerabilities": ("vulnerabilities", _nested(_VULN_SPEC)),
    "timeout": ("timeout", _nested(_TIMEOUT_SPEC)),
}


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    """Find ``key`` in ``data``, exactly first and then ignoring case."""
    if key in data:
        return data[key]
    lowered = key.lower()
    for candidate, value in data.items():
        if isinstance(candidate, str) and candidate.lower() == lowered:
            return value
    return None


def _merge(target: Any, data: Mapping[str, Any], spec: _Spec) -> None:
    by_lower = {key.lower(): (key, entry) for key, entry in spec.items()}
    for key, value in data.items():
        if not isinstance(key, str):
            continue
        match = by_lower.get(key.lower())
        if match is None:
            continue
        json_key, (attr, apply) = match
        setattr(target, attr, apply(getattr(target, attr), value, json_key))


def load_config(filename: str | os.PathLike[str]) -> Config:
    """Read the scanner configuration embedded in an eraser config file.

    The scanner configuration is a YAML document held as a string under
    ``components.scanner.config``; fields it leaves out keep their defaults.
    """
    cfg = default_config()
    eraser_config = yaml.safe_load(Path(filename).read_text())
    if eraser_config is None:
        eraser_config = {}
    if not isinstance(eraser_config, Mapping):
        raise ValueError(f"{filename}: configuration must be a mapping")

    scanner_yaml = ""
    components = _lookup(eraser_config, "components")
    if isinstance(components, Mapping):
        scanner = _lookup(components, "scanner")
        if isinstance(scanner, Mapping):
            embedded = _lookup(scanner, "config")
            if embedded is not None:
                scanner_yaml = _as_str(embedded, "components.scanner.config")

    scanner_config = yaml.safe_load(scanner_yaml) if scanner_yaml else None
    if scanner_config is None:
        return cfg
    if not isinstance(scanner_config, Mapping):
        raise ValueError("scanner configuration must be a mapping")
    _merge(cfg, scanner_config, _CONFIG_SPEC)
    return cfg


def parse_comma_separated_options(
    options: MutableMapping[str, bool], comma_separated_list: str
) -> None:
    """Mark each listed option as enabled in ``options``.

    Raises ValueError at the first item that is not a key of ``options``;
    items before it stay enabled.
    """
    for item in comma_separated_list.split(","):
        if item not in options:
            raise ValueError(f"'{item}' was not one of {list(options)!r}")
        options[item] = True


def true_map_keys(options: Mapping[str, bool]) -> list[str]:
    """Return the keys whose value is True."""
    return [key for key, enabled in options.items() if enabled]