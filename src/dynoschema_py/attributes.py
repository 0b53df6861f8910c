from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_TOKEN_RE = re.compile(r"[#:][A-Za-z0-9_]+")
_SEGMENT_RE = re.compile(r"^([^\[\]]+)((?:\[[0-9]+\])*)$")


@dataclass(frozen=True)
class Translation:
    """Maps tokens of a foreign expression onto the tokens of a registry."""

    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, str] = field(default_factory=dict)

    def apply(self, text: str) -> str:
        def _replace(match: re.Match[str]) -> str:
            token = match.group(0)
            table = self.names if token.startswith("#") else self.values
            return table.get(token, token)

        return _TOKEN_RE.sub(_replace, text)


class AttributeRegistry:
    """Placeholder namespace for one expression-building session.

    Name tokens look like ``#NC0`` and value tokens like ``:VC0``. Every call
    mints a new token unless ``reuse_names`` is set, in which case a name keeps
    the token it was first given. Registries are single-use and not shared.
    """

    def __init__(
        self,
        *,
        name_prefix: str = "#NC",
        value_prefix: str = ":VC",
        reuse_names: bool = False,
    ) -> None:
        if not name_prefix.startswith("#") or not value_prefix.startswith(":"):
            raise ValueError("name_prefix must start with '#' and value_prefix with ':'")
        self._name_prefix = name_prefix
        self._value_prefix = value_prefix
        self._reuse_names = reuse_names
        self._names: dict[str, str] = {}
        self._values: dict[str, Any] = {}
        self._tokens_by_name: dict[str, str] = {}
        self._name_count = 0
        self._value_count = 0

    @property
    def names(self) -> dict[str, str]:
        return dict(self._names)

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    @property
    def expression(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self._names:
            out["ExpressionAttributeNames"] = dict(self._names)
        if self._values:
            out["ExpressionAttributeValues"] = dict(self._values)
        return out

    def add_name(self, raw: str) -> str:
        """Returns the token path for ``raw``, one token per dotted segment.

        A trailing list index (``items[2]``) stays attached to its segment's
        token: ``#NC0[2]``.
        """
        return ".".join(self._segment_token(segment) for segment in raw.split("."))

    def add_value(self, raw: Any) -> str:
        token = f"{self._value_prefix}{self._value_count}"
        self._value_count += 1
        self._values[token] = raw
        return token

    def merge(self, foreign: Mapping[str, Any]) -> Translation:
        translation = Translation()
        for token, name in (foreign.get("ExpressionAttributeNames") or {}).items():
            if "." in name:
                raise ValueError(f"attribute name {name!r} must be a single path segment")
            translation.names[token] = self._name_token(name)
        for token, value in (foreign.get("ExpressionAttributeValues") or {}).items():
            translation.values[token] = self.add_value(value)
        return translation

    def _segment_token(self, segment: str) -> str:
        match = _SEGMENT_RE.match(segment)
        if match is None:
            return self._name_token(segment)
        return self._name_token(match.group(1)) + match.group(2)

    def _name_token(self, name: str) -> str:
        if self._reuse_names:
            existing = self._tokens_by_name.get(name)
            if existing is not None:
                return existing

        token = f"{self._name_prefix}{self._name_count}"
        self._name_count += 1
        self._names[token] = name
        self._tokens_by_name.setdefault(name, token)
        return token
