"""Scalar conversions used by the typed accessors.

Purpose
-------
Turn raw (already interpolated) configuration values into ``bool``, ``int``,
``float``, ``Decimal``, or ``str`` while reporting failures through
:class:`~lib_hierarchical_config.domain.errors.ConversionError`, which names
the key, the target type, and the offending value.

Contents
--------
* :func:`to_bool` / :func:`to_int` / :func:`to_float` / :func:`to_decimal` /
  :func:`to_str` – single-type converters.
* :func:`convert` – dispatch by target type.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Final

from .errors import ConversionError

_TRUE_STRINGS: Final[frozenset[str]] = frozenset({"true", "yes", "on", "1", "y", "t"})
_FALSE_STRINGS: Final[frozenset[str]] = frozenset({"false", "no", "off", "0", "n", "f"})


def to_bool(value: Any, key: str | None = None) -> bool:
    """Convert *value* to ``bool``.

    Examples
    --------
    >>> to_bool("Yes"), to_bool("off"), to_bool(True)
    (True, False, True)
    >>> to_bool("maybe", key="feature.enabled")
    Traceback (most recent call last):
    ...
    lib_hierarchical_config.domain.errors.ConversionError: Key 'feature.enabled' cannot be converted to bool: 'maybe'
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ConversionError(key, "bool", value)


def to_int(value: Any, key: str | None = None) -> int:
    """Convert *value* to ``int``; strings may use ``0x``/``0o``/``0b`` prefixes.

    Examples
    --------
    >>> to_int("42"), to_int("0x1F"), to_int(" -7 ")
    (42, 31, -7)
    """

    if isinstance(value, bool):
        raise ConversionError(key, "int", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text, 0) if _has_radix_prefix(text) else int(text, 10)
        except ValueError as exc:
            raise ConversionError(key, "int", value) from exc
    raise ConversionError(key, "int", value)


def to_float(value: Any, key: str | None = None) -> float:
    """Convert *value* to ``float``.

    Finite input too large for a float (``10**400``, ``"1e999"``) is rejected
    instead of becoming infinity; explicit ``"inf"``/``"nan"`` spellings are
    accepted.

    Examples
    --------
    >>> to_float("3.5"), to_float(2)
    (3.5, 2.0)
    """

    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise ConversionError(key, "float", value)
    source = value.strip() if isinstance(value, str) else value
    try:
        result = float(source)
    except (ValueError, OverflowError) as exc:
        raise ConversionError(key, "float", value) from exc
    if math.isinf(result) and not _is_infinite(source):
        raise ConversionError(key, "float", value)
    return result


def to_decimal(value: Any, key: str | None = None) -> Decimal:
    """Convert *value* to :class:`~decimal.Decimal`."""

    if isinstance(value, bool):
        raise ConversionError(key, "Decimal", value)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float, str)):
        try:
            return Decimal(value.strip() if isinstance(value, str) else str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ConversionError(key, "Decimal", value) from exc
    raise ConversionError(key, "Decimal", value)


def to_str(value: Any, key: str | None = None) -> str:
    """Convert *value* to ``str`` (``bytes`` are decoded as UTF-8)."""

    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ConversionError(key, "str", value) from exc
    return str(value)


_CONVERTERS: Final[dict[type, Callable[[Any, str | None], Any]]] = {
    bool: to_bool,
    int: to_int,
    float: to_float,
    Decimal: to_decimal,
    str: to_str,
}


def convert(key: str | None, value: Any, target: type) -> Any:
    """Convert *value* (stored under *key*) to *target*.

    Examples
    --------
    >>> convert("db.port", "5432", int)
    5432
    """

    try:
        converter = _CONVERTERS[target]
    except KeyError as exc:
        raise ConversionError(key, getattr(target, "__name__", str(target)), value) from exc
    return converter(value, key)


def _has_radix_prefix(text: str) -> bool:
    unsigned = text.lstrip("+-").lower()
    return unsigned.startswith(("0x", "0o", "0b"))


def _is_infinite(source: int | float | Decimal | str) -> bool:
    if isinstance(source, str):
        return source.lstrip("+-").lower() in ("inf", "infinity")
    if isinstance(source, Decimal):
        return source.is_infinite()
    return isinstance(source, float) and math.isinf(source)
