"""List delimiter handlers.

Purpose
-------
Split raw scalar strings such as ``"a,b,c"`` into multi-valued lists and
perform the inverse operations (``escape``/``join``) when values are stored.

Contents
--------
* :class:`AbstractListDelimiterHandler` – shared ``parse``/``escape`` plumbing.
* :class:`DefaultListDelimiterHandler` – backslash escaping of both the
  delimiter and the backslash; ``join`` is the exact inverse of ``split``.
* :class:`LegacyListDelimiterHandler` – the historical escaping scheme that
  only escapes the delimiter; it cannot join losslessly.
* :class:`DisabledListDelimiterHandler` – never splits.
* :data:`DEFAULT_LIST_DELIMITER_HANDLER` – process-wide comma handler.

System Role
-----------
Consulted by :class:`lib_hierarchical_config.core.HierarchicalConfiguration`
when storing values (``add_property``/``set_property``) and when list
accessors read scalar storage.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Final

from .errors import ConfigError

ESCAPE: Final[str] = "\\"


class AbstractListDelimiterHandler:
    """Shared behaviour for handlers operating on a single delimiter string."""

    supports_join: bool = False

    def split(self, value: str, trim: bool = False) -> list[str]:
        raise NotImplementedError

    def escape_string(self, value: str) -> str:
        raise NotImplementedError

    def escape(self, value: Any) -> Any:
        """Escape *value* so that :meth:`split` returns it as a single element.

        Non-string values are returned unchanged.
        """

        if isinstance(value, str):
            return self.escape_string(value)
        return value

    def join(self, values: Iterable[Any]) -> str:
        raise ConfigError(f"{type(self).__name__} does not support joining lists")

    def parse(self, value: Any, trim: bool = True) -> list[Any]:
        """Flatten *value* into the list of single values it represents.

        Strings are split and, by default, their elements trimmed; iterables
        (other than mappings) are flattened recursively, ``None`` yields an
        empty list, other scalars are wrapped.

        Examples
        --------
        >>> DEFAULT_LIST_DELIMITER_HANDLER.parse(["a,b", 3])
        ['a', 'b', 3]
        >>> DEFAULT_LIST_DELIMITER_HANDLER.parse(None)
        []
        """

        if value is None:
            return []
        if isinstance(value, str):
            return list(self.split(value, trim))
        if isinstance(value, (bytes, Mapping)):
            return [value]
        if isinstance(value, Iterable):
            flattened: list[Any] = []
            for item in value:
                flattened.extend(self.parse(item, trim))
            return flattened
        return [value]


class DefaultListDelimiterHandler(AbstractListDelimiterHandler):
    """Split on *delimiter* honouring backslash escapes.

    A backslash escapes the delimiter and itself; in front of any other
    character it is kept literally. Empty segments are preserved, and so is
    surrounding whitespace unless ``trim=True`` is passed (as :meth:`parse`
    does when values are stored).

    ``split(join(values)) == values`` holds for every non-empty list of
    strings. The empty list is the one exception: it joins to ``""``, which
    splits to ``[""]``.

    Examples
    --------
    >>> handler = DefaultListDelimiterHandler(",")
    >>> handler.split("a,b\\\\,c,,d")
    ['a', 'b,c', '', 'd']
    >>> handler.join(["x,y", "z"])
    'x\\\\,y,z'
    >>> handler.split(handler.join(["x,y", "z"]))
    ['x,y', 'z']
    """

    supports_join = True

    def __init__(self, delimiter: str = ",") -> None:
        if len(delimiter) != 1 or delimiter == ESCAPE:
            raise ValueError(f"List delimiter must be a single non-backslash character, got {delimiter!r}")
        self.delimiter = delimiter

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.delimiter!r})"

    def split(self, value: str, trim: bool = False) -> list[str]:
        return _split_escaped(value, self.delimiter, trim)

    def escape_string(self, value: str) -> str:
        escaped: list[str] = []
        for char in value:
            if char in (self.delimiter, ESCAPE):
                escaped.append(ESCAPE)
            escaped.append(char)
        return "".join(escaped)

    def join(self, values: Iterable[Any]) -> str:
        """Escape and concatenate *values*; an empty iterable gives ``""``."""

        return self.delimiter.join(str(self.escape(value)) for value in values)


class LegacyListDelimiterHandler(AbstractListDelimiterHandler):
    """Historical handler: escapes delimiters but leaves backslashes alone.

    Values that end with a backslash or contain backslash pairs cannot be
    stored and re-read unchanged through :meth:`escape`; :meth:`escape_list`
    implements the doubling rules used when a whole list is written to an
    external format.

    Examples
    --------
    >>> LegacyListDelimiterHandler().split("a\\\\,b,c")
    ['a,b', 'c']
    >>> LegacyListDelimiterHandler().escape("a,b")
    'a\\\\,b'
    """

    def __init__(self, delimiter: str = ",") -> None:
        if len(delimiter) != 1 or delimiter == ESCAPE:
            raise ValueError(f"List delimiter must be a single non-backslash character, got {delimiter!r}")
        self.delimiter = delimiter

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.delimiter!r})"

    def split(self, value: str, trim: bool = False) -> list[str]:
        if self.delimiter not in value:
            return [value.strip() if trim else value]
        return _split_escaped(value, self.delimiter, trim)

    def escape_string(self, value: str) -> str:
        return value.replace(self.delimiter, ESCAPE + self.delimiter)

    def escape_list(self, values: Iterable[Any]) -> str | None:
        """Escape and concatenate *values* for storage as one delimited string.

        Returns ``None`` for an empty list.

        Examples
        --------
        >>> LegacyListDelimiterHandler().escape_list(["a,b", "c"])
        'a\\\\,b,c'
        """

        items = [str(value) for value in values]
        if not items:
            return None
        last = self._escape_in_list(items[0])
        parts = [last]
        for item in items[1:]:
            # A value ending in an odd number of escaped backslash pairs would
            # otherwise swallow the following delimiter.
            if last.endswith(ESCAPE) and (_count_trailing_backslashes(last) // 2) % 2 != 0:
                parts.append(ESCAPE + ESCAPE)
            parts.append(self.delimiter)
            last = self._escape_in_list(item)
            parts.append(last)
        return "".join(parts)

    def _escape_in_list(self, value: str) -> str:
        doubled = value.replace(ESCAPE * 2, ESCAPE * 4)
        return self.escape_string(doubled)


class DisabledListDelimiterHandler(AbstractListDelimiterHandler):
    """Handler that treats every string as a single value.

    Examples
    --------
    >>> DisabledListDelimiterHandler().split("a,b")
    ['a,b']
    """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def split(self, value: str, trim: bool = False) -> list[str]:
        return [value.strip() if trim else value]

    def escape_string(self, value: str) -> str:
        return value


def _split_escaped(value: str, delimiter: str, trim: bool) -> list[str]:
    """Tokenise *value* on *delimiter*, removing escapes in front of delimiters and backslashes."""

    tokens: list[str] = []
    token: list[str] = []
    in_escape = False
    for char in value:
        if in_escape:
            if char not in (delimiter, ESCAPE):
                token.append(ESCAPE)
            token.append(char)
            in_escape = False
        elif char == delimiter:
            tokens.append(_finish(token, trim))
            token = []
        elif char == ESCAPE:
            in_escape = True
        else:
            token.append(char)
    if in_escape:
        token.append(ESCAPE)
    tokens.append(_finish(token, trim))
    return tokens


def _finish(token: list[str], trim: bool) -> str:
    text = "".join(token)
    return text.strip() if trim else text


def _count_trailing_backslashes(value: str) -> int:
    return len(value) - len(value.rstrip(ESCAPE))


DEFAULT_LIST_DELIMITER_HANDLER: Final[DefaultListDelimiterHandler] = DefaultListDelimiterHandler(",")
"""Process-wide default: comma delimiter with backslash escaping."""
