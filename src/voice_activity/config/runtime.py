from __future__ import annotations

"""
Environment-backed configuration lookups.

Values come from the process environment first, then from the first ``.env``
style file that defines them. Every helper returns ``or_value`` when the
variable is absent and raises ``ConfigurationError`` when it is malformed.
"""


import os
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar

from .errors import ConfigurationError

T = TypeVar("T")

_BOOLEAN_WORDS = {
    **dict.fromkeys(("1", "true", "t", "yes", "y", "on"), True),
    **dict.fromkeys(("0", "false", "f", "no", "n", "off"), False),
}

_DOTENV_CANDIDATES = (Path(".env"), Path.home() / ".voice_activity.env")

_file_values: dict[str, str] | None = None


def _dotenv_values() -> dict[str, str]:
    from .runtime_helpers import DotenvLoader

    global _file_values
    if _file_values is None:
        merged: dict[str, str] = {}
        for path in _DOTENV_CANDIDATES:
            for key, value in DotenvLoader.load_from_file(path).items():
                merged.setdefault(key, value)
        _file_values = merged
    return _file_values


def reset_default_values() -> None:
    """Forget cached ``.env`` values so the next lookup re-reads them."""
    global _file_values
    _file_values = None


def _raw(name: str, *, strip: bool, allow_blank: bool) -> str | None:
    for candidate in (os.getenv(name), _dotenv_values().get(name)):
        if candidate is None:
            continue
        value = candidate.strip() if strip else candidate
        if value or allow_blank:
            return value
    return None


def _missing(name: str) -> ConfigurationError:
    return ConfigurationError.missing_value(name, "set it in the environment or a .env file")


def _typed(name: str, or_value: T | None, required: bool, parse: Callable[[str], T], kind: str) -> T | None:
    raw = _raw(name, strip=True, allow_blank=False)
    if raw is None:
        if required and or_value is None:
            raise _missing(name)
        return or_value
    try:
        return parse(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Environment variable {name!r} must be {kind} (got {raw!r})") from exc


def _parse_bool(raw: str) -> bool:
    try:
        return _BOOLEAN_WORDS[raw.lower()]
    except KeyError:
        raise ValueError(raw) from None


def env_str(
    name: str,
    or_value: str | None = None,
    *,
    required: bool = False,
    strip: bool = True,
    allow_blank: bool = False,
) -> str | None:
    value = _raw(name, strip=strip, allow_blank=allow_blank)
    if value is None:
        if required:
            raise _missing(name)
        return or_value
    return value


def env_int(name: str, or_value: int | None = None, *, required: bool = False) -> int | None:
    return _typed(name, or_value, required, int, "an integer")


def env_float(name: str, or_value: float | None = None, *, required: bool = False) -> float | None:
    return _typed(name, or_value, required, float, "a float")


def env_bool(name: str, or_value: bool | None = None, *, required: bool = False) -> bool | None:
    return _typed(name, or_value, required, _parse_bool, "a boolean")


def env_seconds(name: str, or_value: int | None = None, *, required: bool = False) -> int | None:
    """Duration in whole seconds; negative values are rejected."""
    value = env_int(name, or_value=or_value, required=required)
    if value is not None and value < 0:
        raise ConfigurationError(f"Environment variable {name!r} must be non-negative (got {value})")
    return value


def env_list(
    name: str,
    *,
    or_value: Sequence[str] | None = None,
    separator: str = ",",
    strip_items: bool = True,
    unique: bool = True,
    required: bool = False,
) -> tuple[str, ...] | None:
    """
    Delimited list such as ``VOICE_OBSERVER_MARKERS=[관전],[대기]``.

    Blank items are dropped and, with ``unique``, repeats keep their first
    position.
    """
    from .runtime_helpers import ListNormalizer

    raw = env_str(name)
    if raw is None:
        if required and not or_value:
            raise _missing(name)
        return None if or_value is None else tuple(or_value)

    items = ListNormalizer.split_and_normalize(raw, separator, strip_items)
    if required and not items:
        raise ConfigurationError(f"Environment variable {name!r} must contain at least one value")
    return ListNormalizer.deduplicate_preserving_order(items) if unique else tuple(items)


def env_path(name: str, or_value: Optional[str] = None) -> Path | None:
    raw = env_str(name, or_value=or_value)
    return None if raw is None else Path(raw).expanduser()


__all__ = [
    "ConfigurationError",
    "env_bool",
    "env_float",
    "env_int",
    "env_list",
    "env_path",
    "env_seconds",
    "env_str",
    "reset_default_values",
]
