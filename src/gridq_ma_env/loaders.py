"""Injection of externally generated value tables and wall maps.

External generators usually wrap their payload in prose or markdown fences,
so every loader first extracts the payload and then validates it. Failures
are reported, never raised, for value tables: an agent whose table cannot be
used keeps its default optimistic initialization.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Dict, Mapping, Set, Union

from .learner import LoadResult, QLearner
from .world import State, parse_ascii_walls

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*\n([\s\S]*?)\n```")
_ASCII_FENCE = re.compile(r"```ascii\s*\n([\s\S]*?)\n```")
_ANY_FENCE = re.compile(r"```\s*\n([\s\S]*?)\n```")
_WALL_CHARS = frozenset("#. ")


def clean_decorations(response: str) -> str:
    """Strip markdown fences and a leading ``json``/``ascii``/``Here ...:`` preamble."""
    text = response.strip()
    text = re.sub(r"```(?:json|ascii)?\s*", "", text)
    text = re.sub(r"(?i)^(?:json|ascii)\s*", "", text)
    text = re.sub(r"(?i)^here.*?:\s*", "", text)
    return text.strip()


def extract_json_content(response: str) -> str:
    match = _JSON_FENCE.search(response)
    if match:
        return match.group(1).strip()
    match = _ANY_FENCE.search(response)
    if match:
        content = match.group(1).strip()
        if content.startswith(("{", "[")):
            return content
    return clean_decorations(response)


def extract_ascii_content(response: str) -> str:
    for pattern in (_ASCII_FENCE, _ANY_FENCE):
        match = pattern.search(response)
        if match:
            return match.group(1).strip("\n")
    lines = [line for line in response.splitlines() if line.strip() and set(line) <= _WALL_CHARS]
    if not lines:
        raise ValueError("No ASCII content found in response")
    return "\n".join(lines)


def validate_wall_structure(ascii_walls: str) -> str:
    lines = [line for line in ascii_walls.split("\n") if line.strip()]
    if not lines:
        raise ValueError("ASCII walls content is empty")
    lengths = [len(line) for line in lines]
    if max(lengths) - min(lengths) > 1:
        raise ValueError(f"Inconsistent line lengths in ASCII walls: min={min(lengths)}, max={max(lengths)}")
    invalid = sorted({c for c in ascii_walls if c not in _WALL_CHARS and c != "\n"})
    if invalid:
        raise ValueError(f"Invalid characters found in ASCII walls: {', '.join(map(repr, invalid))}")
    return ascii_walls


def load_walls_from_response(response: str) -> Set[State]:
    """Extract, validate and parse an ASCII wall map. Raises ``ValueError`` when unusable."""
    return parse_ascii_walls(validate_wall_structure(extract_ascii_content(response)))


def _as_mapping(raw: Union[str, Mapping]) -> Mapping:
    if isinstance(raw, Mapping):
        return raw
    payload = json.loads(extract_json_content(raw))
    if not isinstance(payload, Mapping):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    return payload


def load_value_table(raw: Union[str, Mapping], learner: QLearner) -> LoadResult:
    """Inject a single-agent ``{"(r, c)": {"Up": v, ...}}`` table."""
    try:
        table = _as_mapping(raw)
    except ValueError as exc:  # json.JSONDecodeError included
        return LoadResult(ok=False, error=f"Failed to parse value table: {exc}")
    return learner.load_initial_values(table)


def load_value_tables(raw: Union[str, Mapping], learners: Mapping[str, QLearner]) -> Dict[str, LoadResult]:
    """Inject ``{agent_id: table}`` into each learner, all-or-nothing per agent."""
    try:
        tables = _as_mapping(raw)
    except ValueError as exc:
        error = f"Failed to parse multi-agent value tables: {exc}"
        logger.warning("%s; all agents keep default initialization", error)
        return {aid: LoadResult(ok=False, error=error) for aid in learners}

    results: Dict[str, LoadResult] = {}
    for aid, learner in learners.items():
        if aid not in tables:
            results[aid] = LoadResult(ok=False, error=f"No value table found for agent {aid!r}")
        else:
            results[aid] = learner.load_initial_values(tables[aid])
        if results[aid].ok:
            logger.info("Loaded %d initial values for agent %r", results[aid].loaded, aid)
        else:
            logger.warning("Agent %r keeps default initialization: %s", aid, results[aid].error)

    if results and not any(r.ok for r in results.values()):
        logger.warning("No value table could be loaded; every agent keeps default initialization")
    return results
