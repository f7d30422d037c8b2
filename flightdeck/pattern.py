"""
Route pattern compiler.

Patterns are ``/``-delimited and support:

- literal segments: ``/users/list``
- named parameters: ``/users/@id``
- constrained parameters: ``/users/@id:[0-9]+`` (the constraint ends at the
  first ``/``, ``(`` or ``)``)
- optional trailing segments wrapped in parentheses, which may nest:
  ``/blog(/@year(/@month(/@day)))``
- a trailing splat that matches the rest of the path: ``/files/*``; a bare
  ``*`` matches every path
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import unquote

from .exceptions import ConfigurationError

# Set up logger for this module
logger = logging.getLogger(__name__)

DEFAULT_PARAM_REGEX = r"[^/?]+"

_TOKEN = re.compile(r"@(?P<name>\w+)(?::(?P<constraint>[^/()]*))?|(?P<open>\()|(?P<close>\))")

# Parts are nested tuples: ("literal", text), ("param", name), ("optional", parts)
Part = Tuple[str, object]


@dataclass(frozen=True)
class CompiledPattern:
    """A compiled route pattern: regex, ordered parameter names and URL template."""

    pattern: str
    regex: "re.Pattern[str]"
    param_names: Tuple[str, ...]
    has_splat: bool
    parts: Tuple[Part, ...]

    def match(self, path: str) -> Optional[Tuple[Dict[str, Optional[str]], Optional[str]]]:
        """Match a path (without query string) against this pattern.

        Returns:
            Tuple of (params, splat) if the path matches, None otherwise. Params
            keep the pattern's declared order; omitted optional parameters are
            None. Splat is None unless the pattern ends with ``*``.
        """
        found = self.regex.match(path)
        if found is None:
            return None

        params: Dict[str, Optional[str]] = {}
        for index, name in enumerate(self.param_names):
            value = found.group(f"p{index}")
            params[name] = unquote(value) if value is not None else None

        splat = None
        if self.has_splat:
            splat = (found.group("splat") or "").lstrip("/")
        return params, splat

    def build(self, params: Optional[Mapping[str, object]] = None) -> str:
        """Substitute parameter values into the pattern.

        Values are not checked against parameter constraints. Optional groups
        whose parameters are missing are dropped; a missing required parameter
        raises ConfigurationError.
        """
        params = params or {}
        url = _render_parts(self.parts, params, self.pattern, optional=False) or ""
        if self.has_splat and url != "/":
            url = url.rstrip("/")
        return url or "/"


def _render_parts(parts, params: Mapping[str, object], pattern: str, optional: bool) -> Optional[str]:
    pieces: List[str] = []
    for kind, value in parts:
        if kind == "literal":
            pieces.append(value)  # type: ignore[arg-type]
        elif kind == "param":
            if params.get(value) is None:  # type: ignore[call-overload]
                if optional:
                    return None
                raise ConfigurationError(
                    f"Missing value for required parameter '{value}' in pattern '{pattern}'"
                )
            pieces.append(str(params[value]))  # type: ignore[index]
        else:
            rendered = _render_parts(value, params, pattern, optional=True)
            if rendered is not None:
                pieces.append(rendered)
    return "".join(pieces)


def _tokenize(pattern: str) -> Tuple[Tuple[Part, ...], List[str], List[Optional[str]]]:
    """Split a pattern (without its splat) into a part tree."""
    names: List[str] = []
    constraints: List[Optional[str]] = []
    stack: List[List[Part]] = [[]]
    position = 0

    for token in _TOKEN.finditer(pattern):
        if token.start() > position:
            stack[-1].append(("literal", pattern[position:token.start()]))
        position = token.end()

        if token.group("name"):
            name = token.group("name")
            if name in names:
                raise ConfigurationError(f"Duplicate parameter '{name}' in pattern '{pattern}'")
            names.append(name)
            constraints.append(token.group("constraint"))
            stack[-1].append(("param", name))
        elif token.group("open"):
            stack.append([])
        else:
            if len(stack) == 1:
                raise ConfigurationError(f"Unbalanced ')' in pattern '{pattern}'")
            group = stack.pop()
            stack[-1].append(("optional", tuple(group)))

    if position < len(pattern):
        stack[-1].append(("literal", pattern[position:]))
    if len(stack) != 1:
        raise ConfigurationError(f"Unbalanced '(' in pattern '{pattern}'")

    return tuple(stack[0]), names, constraints


def _parts_to_regex(parts, names: List[str], constraints: List[Optional[str]]) -> str:
    regex = []
    for kind, value in parts:
        if kind == "literal":
            regex.append(re.escape(value))  # type: ignore[arg-type]
        elif kind == "param":
            index = names.index(value)  # type: ignore[arg-type]
            constraint = constraints[index]
            regex.append(f"(?P<p{index}>{constraint or DEFAULT_PARAM_REGEX})")
        else:
            regex.append(f"(?:{_parts_to_regex(value, names, constraints)})?")
    return "".join(regex)


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str, case_sensitive: bool = False) -> CompiledPattern:
    """Compile a route pattern into a CompiledPattern.

    The result is a pure function of its arguments, so it is cached.

    Raises:
        ConfigurationError: duplicate parameter names, unbalanced parentheses
            or an invalid parameter constraint.
    """
    has_splat = pattern.endswith("*")
    body = pattern[:-1] if has_splat else pattern

    splat_regex = ""
    if has_splat:
        if body.endswith("/"):
            body = body[:-1]
            splat_regex = r"(?:/(?P<splat>.*))?"
        else:
            splat_regex = r"(?P<splat>.*)"

    parts, names, constraints = _tokenize(body)
    regex = _parts_to_regex(parts, names, constraints)

    if has_splat:
        regex += splat_regex
    elif pattern.endswith("/"):
        regex += "?"
    else:
        regex += "/?"

    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        compiled = re.compile(f"^{regex}$", flags)
    except re.error as e:
        raise ConfigurationError(f"Invalid pattern '{pattern}': {e}") from e

    logger.debug(f"Compiled pattern {pattern!r} to {compiled.pattern!r}")
    return CompiledPattern(
        pattern=pattern,
        regex=compiled,
        param_names=tuple(names),
        has_splat=has_splat,
        parts=parts,
    )
