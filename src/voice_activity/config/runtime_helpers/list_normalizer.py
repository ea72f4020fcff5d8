"""Normalization of delimited list settings."""

from __future__ import annotations

from typing import Iterable, Sequence


class ListNormalizer:
    """Splits and cleans delimited values such as ``"[관전],[대기]"``."""

    @staticmethod
    def split_and_normalize(raw_value: str, separator: str, strip_items: bool) -> list[str]:
        parts: Iterable[str] = raw_value.split(separator) if separator else [raw_value]
        items: list[str] = []
        for part in parts:
            candidate = part.strip() if strip_items else part
            if strip_items and not candidate:
                continue
            items.append(candidate)
        return items

    @staticmethod
    def deduplicate_preserving_order(items: Sequence[str]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(items))
