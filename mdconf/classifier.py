"""Heuristic classification of extracted blocks.

Rules are applied in a fixed order and the first match wins; later rules are
deliberately broader than earlier ones:

1. disabled blocks (a leading ``@ disable`` marker line),
2. bare component references (``owner/repo`` on a single line),
3. component spec shapes (``return {...}``/``return [...]`` or ``spec = ...``),
4. external setup declarations (``def config(...)``),
5. free-form setup code.

A leading ``@ manual`` marker line is independent of the rules above and flags
every component spec produced by the block as manually managed.
"""

from __future__ import annotations

import dataclasses
import re
from enum import Enum
from typing import Any, Iterable, List, Mapping, Tuple

from .extractor import normalize_source
from .logging import get_logger
from .models import Block, BlockKind, ClassifiedBlock

_MARKER_LINE = re.compile(r"^[ \t]*(?:#[ \t]*)?@[ \t]*(?P<name>disable|manual)[ \t]*(?:\n|$)")
_BARE_TOKEN = re.compile(r"^[^\s'\"]+$")
_EXTERNAL_SETUP = re.compile(r"^def\s+config\s*\(")

_logger = get_logger("classifier")


class ResultShape(str, Enum):
    """Tag describing the value a spec block evaluated to."""

    LIST = "list"
    SPEC_LIKE = "spec-like"
    SETUP_CALLABLE = "setup-callable"
    OPAQUE = "opaque"
    INVALID = "invalid"


def read_markers(text: str) -> Tuple[List[str], str]:
    """Split leading marker lines from ``text``.

    Returns the marker names in order of appearance and the remaining body.
    """
    markers: List[str] = []
    body = text.lstrip()
    while True:
        match = _MARKER_LINE.match(body)
        if match is None:
            break
        markers.append(match.group("name"))
        body = body[match.end():].lstrip()
    return markers, body


def is_bare_reference(text: str, convention: str = "spec") -> bool:
    """Return True for a single-line component reference such as ``owner/repo``.

    The line must be one token: statements like ``x = 'a/b'`` carry whitespace
    or quotes and stay free-form.
    """
    if "\n" in text:
        return False
    if _reserved_prefix(convention).match(text):
        return False
    return "/" in text and _BARE_TOKEN.match(text) is not None


def is_spec_shape(text: str, convention: str = "spec") -> bool:
    """Return True when ``text`` returns or assigns a list/dict literal."""
    return bool(re.match(r"^return\s*[\[{]", text) or _convention_assignment(convention).match(text))


def is_external_setup(text: str) -> bool:
    """Return True when ``text`` declares the named ``config`` setup function."""
    return bool(_EXTERNAL_SETUP.match(text))


def is_spec_like(item: Any) -> bool:
    """Return True when ``item`` describes a component.

    A non-empty string is a bare identifier. A mapping qualifies when it has a
    non-empty ``source`` string, a ``path`` or ``import`` marker, or a
    ``config`` hook.
    """
    if isinstance(item, str):
        return bool(item)
    if not isinstance(item, Mapping):
        return False
    source = item.get("source")
    if isinstance(source, str) and source:
        return True
    return bool(item.get("path") or item.get("import") or item.get("config"))


def has_setup(value: Any) -> bool:
    """Return True when ``value`` exposes a callable ``setup`` key or attribute."""
    if isinstance(value, Mapping):
        return callable(value.get("setup"))
    return callable(getattr(value, "setup", None))


def inspect_result(value: Any) -> ResultShape:
    """Tag an evaluated spec block so the builder can interpret it."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return ResultShape.LIST
    if isinstance(value, Mapping):
        if is_spec_like(value):
            return ResultShape.SPEC_LIKE
        if has_setup(value):
            return ResultShape.SETUP_CALLABLE
        return ResultShape.OPAQUE
    if value is None or isinstance(value, (str, bytes, int, float, bool)):
        return ResultShape.INVALID
    if has_setup(value):
        return ResultShape.SETUP_CALLABLE
    return ResultShape.INVALID


class BlockClassifier:
    """Assigns a :class:`BlockKind` to each block."""

    def __init__(self, convention: str = "spec") -> None:
        self.convention = convention

    def classify(self, block: Block) -> ClassifiedBlock:
        text = normalize_source(block.normalized_text)
        markers, body = read_markers(text)
        block = dataclasses.replace(
            block,
            disabled="disable" in markers,
            manual="manual" in markers,
        )

        if block.disabled:
            kind = BlockKind.DISABLED
        elif is_bare_reference(body, self.convention):
            kind = BlockKind.BARE_REFERENCE
        elif is_spec_shape(body, self.convention):
            kind = BlockKind.COMPONENT_SPEC
        elif is_external_setup(body):
            kind = BlockKind.EXTERNAL_SETUP
        else:
            kind = BlockKind.FREE_FORM
        return ClassifiedBlock(block=block, kind=kind, body=body)

    def classify_all(self, blocks: Iterable[Block]) -> List[ClassifiedBlock]:
        classified: List[ClassifiedBlock] = []
        for block in blocks:
            result = self.classify(block)
            if result.kind is BlockKind.DISABLED:
                _logger.info("Skipping disabled code block #%d", block.index)
            else:
                _logger.debug("Block #%d classified as %s", block.index, result.kind.value)
            classified.append(result)
        return classified


def _reserved_prefix(convention: str) -> "re.Pattern[str]":
    return re.compile(rf"^(?:return\b|def\b|{re.escape(convention)}\s*=)")


def _convention_assignment(convention: str) -> "re.Pattern[str]":
    return re.compile(rf"^{re.escape(convention)}\s*=\s*[\[{{]")


__all__ = [
    "BlockClassifier",
    "ResultShape",
    "has_setup",
    "inspect_result",
    "is_bare_reference",
    "is_external_setup",
    "is_spec_like",
    "is_spec_shape",
    "read_markers",
]
