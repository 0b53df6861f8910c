from __future__ import annotations

import re
from collections.abc import Mapping

DEFAULT_REMOVE = re.compile(r"""[^\w\s$*_+~.()'"!\-:@]""", re.ASCII)
_SEPARATORS = re.compile(r"[-\s]+")

_LATIN = dict(
    zip(
        "ÀÁÂÃÄÅÇÈÉÊËÌÍÎÏÐÑÒÓÔÕÖØÙÚÛÜÝàáâãäåçèéêëìíîïðñòóôõöøùúûüýÿ",
        "AAAAAACEEEEIIIIDNOOOOOOUUUUYaaaaaaceeeeiiiidnoooooouuuuyy",
        strict=True,
    )
)

CHAR_MAP: dict[str, str] = {
    **_LATIN,
    "Æ": "AE",
    "æ": "ae",
    "Œ": "OE",
    "œ": "oe",
    "Þ": "TH",
    "þ": "th",
    "ß": "ss",
    "Ł": "L",
    "ł": "l",
    "Š": "S",
    "š": "s",
    "Ž": "Z",
    "ž": "z",
    "$": "dollar",
    "%": "percent",
    "&": "and",
    "<": "less",
    ">": "greater",
    "|": "or",
    "¢": "cent",
    "£": "pound",
    "¤": "currency",
    "¥": "yen",
    "©": "(c)",
    "ª": "a",
    "®": "(r)",
    "º": "o",
    "€": "euro",
    "∑": "sum",
    "∞": "infinity",
    "♥": "love",
}


def replace_chars(value: str, char_map: Mapping[str, str] | None) -> str:
    if not char_map:
        return value
    return "".join(char_map.get(ch) or ch for ch in value)


def _slugify_once(
    value: str,
    *,
    replacement: str = "-",
    remove: re.Pattern[str] | str | None = None,
    lower: bool = False,
) -> str:
    pattern = DEFAULT_REMOVE if remove is None else re.compile(remove) if isinstance(remove, str) else remove
    slug = "".join(pattern.sub("", CHAR_MAP.get(ch) or ch) for ch in value)
    slug = _SEPARATORS.sub(replacement or "-", slug.strip())
    return slug.lower() if lower else slug


def slugify(
    value: str,
    *,
    replacement: str = "-",
    remove: re.Pattern[str] | str | None = None,
    lower: bool = False,
    char_map: Mapping[str, str] | None = None,
) -> str:
    """Canonicalizes ``value`` into a URL and key friendly slug.

    Whitespace runs become ``replacement`` and characters outside the safe set
    are dropped. When a custom ``remove`` pattern or ``char_map`` is given, a
    second default pass runs so that symbols and emoji never survive.
    """
    if not isinstance(value, str):
        raise TypeError("slugify: string argument expected")

    if remove is None and char_map is None and replacement == "-" and not lower:
        return _slugify_once(value)

    first = _slugify_once(replace_chars(value, char_map), replacement=replacement, remove=remove, lower=lower)
    return _slugify_once(first.strip(), replacement=replacement, lower=lower)
