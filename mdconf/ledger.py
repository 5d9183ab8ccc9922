"""Persisted per-block content hashes and change detection."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Dict, Sequence, Tuple

from .logging import get_logger
from .models import Block, ChangeReport

_logger = get_logger("ledger")


def hash_block(text: str) -> str:
    """Return the SHA-256 hex digest of a block's normalized text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class HashLedger:
    """Stores ``index -> hash`` for the blocks of the previous run."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Dict[int, str]:
        """Return the persisted ledger; missing or corrupt files read as empty."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            _logger.warning("Ignoring unreadable hash ledger %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            _logger.warning("Ignoring hash ledger %s: expected a mapping", self.path)
            return {}

        ledger: Dict[int, str] = {}
        for key, value in data.items():
            try:
                index = int(key)
            except (TypeError, ValueError):
                continue
            if isinstance(value, str):
                ledger[index] = value
        return ledger

    def persist(self, hashes: Dict[int, str]) -> bool:
        """Replace the ledger wholesale; returns False when the write failed."""
        payload = {str(index): hashes[index] for index in sorted(hashes)}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            _logger.error("Unable to write hash ledger %s: %s", self.path, exc)
            return False
        return True


class ChangeDetector:
    """Compares the current blocks against the previous run's ledger."""

    def __init__(self, ledger: HashLedger) -> None:
        self.ledger = ledger

    def compare(self, blocks: Sequence[Block]) -> Tuple[ChangeReport, Dict[int, str]]:
        """Diff ``blocks`` against the ledger without writing it."""
        current = {block.index: hash_block(block.normalized_text) for block in blocks}
        previous = self.ledger.load()

        report = ChangeReport()
        for index in sorted(current):
            if previous.get(index) != current[index]:
                report.changed.append(index)
        report.removed = [index for index in sorted(previous) if index > len(current)]
        return report, current

    def detect(self, blocks: Sequence[Block]) -> ChangeReport:
        """Diff ``blocks`` against the ledger, then replace the ledger."""
        report, current = self.compare(blocks)
        for index in report.changed:
            _logger.info("Config block %d has changed", index)
        for index in report.removed:
            _logger.info("Config block %d has been removed", index)
        self.ledger.persist(current)
        return report


__all__ = ["ChangeDetector", "HashLedger", "hash_block"]
