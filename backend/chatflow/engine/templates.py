# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Template Resolver

Resolves `{{path.to.value}}` expressions against upstream node output.

Lookup strategies, tried in order until one finds a value:
1. direct key        - the whole path is a key of the search map
2. path traversal    - dot/bracket walk, numbered node keys ("1. AI Agent.x")
3. agent heuristic   - walk the path inside agent-like node outputs, then
                       inside every numbered node output
4. shape search      - for known suffixes ("result.response", "response"),
                       depth-first search for the first dict with that shape

Found values are rendered as JSON for dicts/lists, "true"/"false" for
booleans and str() otherwise. Unresolved expressions follow the
UnresolvedPolicy (default: leave the literal in place).
"""

import json
import re
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple, Union

from .exceptions import TemplateResolutionError
from .models import NodeOutputList, FlatInput, normalize_input


EXPRESSION_PATTERN = re.compile(r"\{\{\s*(.*?)\s*\}\}")
PATH_TOKEN_PATTERN = re.compile(
    r"\[\s*(-?\d+)\s*\]"              # [0]
    r"|\[\s*[\"']([^\"']*)[\"']\s*\]"  # ["Label"] / ['key']
    r"|([^.\[\]]+)"                    # plain segment
)
NUMBERED_KEY_PATTERN = re.compile(r"^\d+\.\s")

AGENT_MARKERS = ("ai agent", "agent")
SHAPE_SUFFIXES = ("result.response", "output.text", "response")
TRIGGER_TYPE_SUFFIX = "trigger"

_MISSING = object()

Resolver = Callable[[str], Tuple[bool, Any]]


class UnresolvedPolicy(str, Enum):
    KEEP_LITERAL = "keep-literal"
    EMPTY = "empty"
    ERROR = "error"


# =============================================================================
# PATHS
# =============================================================================

def parse_path(path: str) -> List[Union[str, int]]:
    """Split `a.b[0]["c d"]` into ['a', 'b', 0, 'c d']"""
    segments: List[Union[str, int]] = []
    for match in PATH_TOKEN_PATTERN.finditer(path):
        index, quoted, plain = match.groups()
        if index is not None:
            segments.append(int(index))
        elif quoted is not None:
            segments.append(quoted)
        else:
            plain = plain.strip()
            if plain:
                segments.append(plain)
    return segments


def traverse(value: Any, segments: List[Union[str, int]]) -> Any:
    """Walk `segments` into nested dicts/lists. Returns _MISSING when absent."""
    current = value
    for segment in segments:
        if isinstance(current, dict):
            if segment in current:
                current = current[segment]
            elif str(segment) in current:
                current = current[str(segment)]
            else:
                return _MISSING
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return _MISSING
        else:
            return _MISSING
    return current


# =============================================================================
# SEARCH MAP
# =============================================================================

def _is_trigger_type(node_type: str) -> bool:
    return (node_type or "").lower().endswith(TRIGGER_TYPE_SUFFIX)


def build_search_map(input_data: Any) -> Dict[str, Any]:
    """
    Flatten cascading input into one lookup map.

    Each entry is reachable under "{order}. {label}". Entry data keys are
    merged into the top level, first writer wins, except that trigger data
    always overrides so `{{message...}}` refers to the trigger's message.
    """
    normalized = normalize_input(input_data)
    if isinstance(normalized, FlatInput):
        return dict(normalized.data)

    search: Dict[str, Any] = {}
    for entry in normalized.entries:
        search[entry.key] = entry.data

    for entry in normalized.entries:
        for key, value in entry.data.items():
            search.setdefault(key, value)

    for entry in normalized.entries:
        if _is_trigger_type(entry.node_type):
            search.update(entry.data)

    return search


# =============================================================================
# STRATEGIES
# =============================================================================

def _direct(path: str, search: Dict[str, Any]) -> Any:
    return search[path] if path in search else _MISSING


def _traversal(path: str, search: Dict[str, Any]) -> Any:
    # Numbered node keys contain dots and spaces, so match them as a prefix
    for key in sorted(search.keys(), key=len, reverse=True):
        if NUMBERED_KEY_PATTERN.match(key) and (path.startswith(key + ".") or path.startswith(key + "[")):
            found = traverse(search[key], parse_path(path[len(key):]))
            if found is not _MISSING:
                return found
    return traverse(search, parse_path(path))


def _is_agent_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in AGENT_MARKERS)


def _heuristic(path: str, search: Dict[str, Any]) -> Any:
    segments = parse_path(path)
    if not segments:
        return _MISSING

    agent_entries = [v for k, v in search.items() if _is_agent_key(k) and isinstance(v, dict)]
    numbered_entries = [v for k, v in search.items() if NUMBERED_KEY_PATTERN.match(k) and isinstance(v, dict)]

    for value in agent_entries:
        found = traverse(value, segments)
        if found is _MISSING and len(segments) > 1:
            # `{{AI Agent.response}}`: first segment names the node
            found = traverse(value, segments[1:])
        if found is not _MISSING:
            return found

    for value in numbered_entries:
        found = traverse(value, segments)
        if found is not _MISSING:
            return found
    return _MISSING


def _find_shape(value: Any, suffix: List[Union[str, int]], depth: int = 0) -> Any:
    if depth > 20:
        return _MISSING
    if isinstance(value, dict):
        found = traverse(value, suffix)
        if found is not _MISSING:
            return found
        children = value.values()
    elif isinstance(value, list):
        children = value
    else:
        return _MISSING
    for child in children:
        found = _find_shape(child, suffix, depth + 1)
        if found is not _MISSING:
            return found
    return _MISSING


def _shape_search(path: str, search: Dict[str, Any]) -> Any:
    for suffix in SHAPE_SUFFIXES:
        if path == suffix or path.endswith("." + suffix):
            found = _find_shape(search, parse_path(suffix))
            if found is not _MISSING:
                return found
    return _MISSING


STRATEGIES = (_direct, _traversal, _heuristic, _shape_search)


def lookup_in_map(path: str, search: Dict[str, Any]) -> Tuple[bool, Any]:
    """Run every strategy in order. A strategy that raises counts as a miss."""
    path = path.strip()
    if not path:
        return False, None
    for strategy in STRATEGIES:
        try:
            found = strategy(path, search)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError, RecursionError):
            continue
        if found is not _MISSING:
            return True, found
    return False, None


def lookup(path: str, input_data: Any) -> Tuple[bool, Any]:
    """Resolve a single path against raw or normalized node input"""
    return lookup_in_map(path, build_search_map(input_data))


# =============================================================================
# RENDERING
# =============================================================================

def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def substitute(text: str, resolver: Resolver, policy: Union[UnresolvedPolicy, str] = UnresolvedPolicy.KEEP_LITERAL) -> str:
    """Replace every `{{expr}}` in `text` using `resolver(expr) -> (found, value)`"""
    policy = UnresolvedPolicy(policy)

    def _replace(match: "re.Match") -> str:
        expression = match.group(1)
        found, value = resolver(expression)
        if found:
            return format_value(value)
        if policy is UnresolvedPolicy.ERROR:
            raise TemplateResolutionError(expression)
        if policy is UnresolvedPolicy.EMPTY:
            return ""
        return match.group(0)

    return EXPRESSION_PATTERN.sub(_replace, text)


def resolve(text: Any, input_data: Any, policy: Union[UnresolvedPolicy, str] = UnresolvedPolicy.KEEP_LITERAL) -> Any:
    """
    Resolve every template expression in `text` against `input_data`.

    Non-string values are returned unchanged. With the default policy this
    never raises.
    """
    if not isinstance(text, str) or "{{" not in text:
        return text
    search = build_search_map(input_data)
    return substitute(text, lambda expression: lookup_in_map(expression, search), policy)


def resolve_config(config: Any, input_data: Any, policy: Union[UnresolvedPolicy, str] = UnresolvedPolicy.KEEP_LITERAL) -> Any:
    """Recursively resolve every string inside a config dict/list"""
    search = build_search_map(input_data)

    def resolver(expression: str) -> Tuple[bool, Any]:
        return lookup_in_map(expression, search)

    def _walk(value: Any) -> Any:
        if isinstance(value, str):
            return substitute(value, resolver, policy) if "{{" in value else value
        if isinstance(value, dict):
            return {k: _walk(v) for k, v in value.items()}
        if isinstance(value, list):
            return [_walk(v) for v in value]
        return value

    return _walk(config)


# =============================================================================
# VALIDATION
# =============================================================================

def find_expressions(text: str) -> List[str]:
    if not isinstance(text, str):
        return []
    return [match.group(1) for match in EXPRESSION_PATTERN.finditer(text)]


def validate_template(text: str) -> List[str]:
    """Return a list of problems with the template syntax (empty if valid)"""
    if not isinstance(text, str):
        return []

    errors = []
    if text.count("{{") != text.count("}}"):
        errors.append("Unbalanced template braces")

    for expression in find_expressions(text):
        if not expression:
            errors.append("Empty template expression")
            continue
        if expression.count("[") != expression.count("]"):
            errors.append(f"Unbalanced brackets in expression: {expression}")
        if expression.startswith(".") or expression.endswith(".") or ".." in expression:
            errors.append(f"Invalid path in expression: {expression}")

    return errors
