"""Links free-form setup entries to the component they configure."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, Optional, Sequence

from .logging import get_logger
from .models import ComponentSpec, SetupEntry

_MODULE_LOAD = re.compile(
    r"""\b(?:require|import_module|__import__)\s*\(\s*["']([^"']+)["']\s*\)"""
)

_logger = get_logger("associator")


def guess_module(text: str) -> Optional[str]:
    """Return the first module loaded by name in ``text``, if any."""
    match = _MODULE_LOAD.search(text)
    return match.group(1) if match else None


def _mentions(text: str, identifier: str, word_boundary: bool) -> bool:
    if not word_boundary:
        return identifier in text
    pattern = rf"(?<![\w./-]){re.escape(identifier)}(?![\w./-])"
    return re.search(pattern, text) is not None


def associate(
    specs: Sequence[ComponentSpec],
    entries: Sequence[SetupEntry],
    *,
    word_boundary: bool = False,
) -> Dict[int, str]:
    """Map setup entry indices to component identifiers.

    The first pass looks for a module loaded by name; the second pass, for
    entries still unassociated, picks the first spec whose identifier appears
    in the entry text. An entry is never re-associated once matched.
    """
    associations: Dict[int, str] = {}

    for entry in entries:
        text = entry.text
        if text is None:
            continue
        guessed = guess_module(text)
        if guessed:
            associations[entry.index] = guessed
            _logger.debug("Guessed component association for config block #%d: %s", entry.index, guessed)

    for spec in specs:
        identifier = spec.identifier
        if not identifier:
            continue
        for entry in entries:
            text = entry.text
            if text is None or entry.index in associations:
                continue
            if _mentions(text, identifier, word_boundary):
                associations[entry.index] = identifier
                _logger.debug("Associated config block #%d with component spec: %s", entry.index, identifier)

    return associations


class AssociationRecord:
    """Write-only JSON record of associations, kept for inspection."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def persist(self, associations: Dict[int, str]) -> bool:
        payload = {str(index): associations[index] for index in sorted(associations)}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            _logger.error("Unable to write component-config associations to %s: %s", self.path, exc)
            return False
        _logger.debug("Saved component-config associations to %s", self.path)
        return True


__all__ = ["AssociationRecord", "associate", "guess_module"]
