"""Minimal ``.env`` reader backing environment lookups."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple

from ..errors import ConfigurationError


class DotenvLoader:
    """Parses ``KEY=value`` lines; ``export`` prefixes and surrounding quotes are accepted."""

    @staticmethod
    def load_from_file(path: Path) -> Dict[str, str]:
        """Pairs defined in ``path``; an absent file yields ``{}``, an unreadable one raises."""
        if not path.is_file():
            return {}
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise ConfigurationError.invalid_value("dotenv file", str(path), f"unreadable: {exc}") from exc

        values: Dict[str, str] = {}
        for line in lines:
            pair = DotenvLoader.parse_line(line)
            if pair is not None:
                values[pair[0]] = pair[1]
        return values

    @staticmethod
    def parse_line(line: str) -> Optional[Tuple[str, str]]:
        text = line.strip()
        if not text or text.startswith("#"):
            return None
        text = text.removeprefix("export ").lstrip()
        key, sep, value = text.partition("=")
        key = key.strip()
        if not sep or not key:
            return None
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        return key, value
