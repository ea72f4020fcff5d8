from __future__ import annotations

"""Configuration error type with constructors for the common failure shapes."""


class ConfigurationError(RuntimeError):
    """A setting is missing, malformed or outside its allowed range."""

    @classmethod
    def missing_value(cls, param_name: str, hint: str = "") -> "ConfigurationError":
        suffix = f" ({hint})" if hint else ""
        return cls(f"{param_name} is not set{suffix}")

    @classmethod
    def invalid_value(cls, param_name: str, value, reason: str = "") -> "ConfigurationError":
        suffix = f": {reason}" if reason else ""
        return cls(f"{param_name}={value!r} is invalid{suffix}")

    @classmethod
    def out_of_range(cls, param_name: str, value, minimum, maximum=None) -> "ConfigurationError":
        """``maximum`` of ``None`` means the range is open above."""
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        return cls(f"{param_name} must be {bounds} (got {value!r})")


__all__ = ["ConfigurationError"]
