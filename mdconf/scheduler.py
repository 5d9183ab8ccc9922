"""Splits setup entries into deferred and immediate work."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Sequence

from .config import DEFAULT_KEYMAP_PATTERN
from .errors import CompileError
from .evaluator import Evaluator
from .logging import get_logger, log_failure
from .models import ComponentSpec, EntryKind, SetupEntry

_logger = get_logger("scheduler")


@dataclass
class ScheduleResult:
    """Entries to run now and actions waiting on a component load."""

    immediate: List[SetupEntry] = field(default_factory=list)
    deferred: Dict[str, List[Callable[[], object]]] = field(default_factory=dict)


class Scheduler:
    """Defers associated setup entries until their component has loaded.

    Entries that register keymaps always run immediately so bindings exist
    before the component's lazy load finishes.
    """

    def __init__(self, evaluator: Evaluator | None = None, keymap_pattern: str = DEFAULT_KEYMAP_PATTERN) -> None:
        self.evaluator = evaluator or Evaluator()
        self.keymap_pattern = re.compile(keymap_pattern)

    def registers_keymaps(self, entry: SetupEntry) -> bool:
        text = entry.text
        return text is not None and self.keymap_pattern.search(text) is not None

    def schedule(
        self,
        specs: Sequence[ComponentSpec],
        entries: Sequence[SetupEntry],
        associations: Mapping[int, str],
    ) -> ScheduleResult:
        result = ScheduleResult()
        waiting: Dict[str, List[SetupEntry]] = {}

        for entry in entries:
            identifier = associations.get(entry.index)
            if not identifier or self.registers_keymaps(entry):
                result.immediate.append(entry)
                continue
            action = self._deferred_action(entry, identifier)
            if action is None:
                continue
            result.deferred.setdefault(identifier, []).append(action)
            waiting.setdefault(identifier, []).append(entry)
            _logger.debug("Deferred config block #%d registered for component: %s", entry.index, identifier)

        injected = self.inject(specs, result.deferred)

        orphaned = [identifier for identifier in result.deferred if identifier not in injected]
        for identifier in orphaned:
            _logger.warning(
                "No component spec matches %s; running its %d deferred config block(s) immediately",
                identifier,
                len(waiting[identifier]),
            )
            result.immediate.extend(waiting[identifier])
            del result.deferred[identifier]
        result.immediate.sort(key=lambda entry: entry.index)
        return result

    def inject(
        self,
        specs: Sequence[ComponentSpec],
        deferred: Mapping[str, List[Callable[[], object]]],
    ) -> List[str]:
        """Attach deferred actions to the first spec with a matching identifier."""
        injected: List[str] = []
        for spec in specs:
            identifier = spec.identifier
            if not identifier or identifier in injected or identifier not in deferred:
                continue
            spec.deferred.extend(deferred[identifier])
            injected.append(identifier)
            _logger.info("Injected deferred config into component spec: %s", identifier)
        return injected

    def _deferred_action(self, entry: SetupEntry, identifier: str) -> Callable[[], object] | None:
        if entry.kind is EntryKind.SOURCE:
            try:
                return self.evaluator.compile(entry.value, filename=f"<config {entry.index}>")
            except CompileError as exc:
                log_failure(_logger, f"Failed to compile deferred config for component: {identifier}", exc, entry.value)
                return None
        if entry.kind is EntryKind.CALLABLE:
            return entry.value
        if entry.kind is EntryKind.TABLE:
            return _table_setup(entry.value)
        _logger.warning("Skipping deferred config block #%d (unexpected %s value)", entry.index, entry.kind.value)
        return None


def execute_immediate(entries: Sequence[SetupEntry], evaluator: Evaluator | None = None) -> int:
    """Run immediate entries in order, isolating failures; returns successes."""
    evaluator = evaluator or Evaluator()
    succeeded = 0
    for entry in entries:
        if entry.kind is EntryKind.SOURCE:
            try:
                target = evaluator.compile(entry.value, filename=f"<config {entry.index}>")
            except CompileError as exc:
                log_failure(_logger, f"Error compiling immediate config block #{entry.index}", exc, entry.value)
                continue
        elif entry.kind is EntryKind.CALLABLE:
            target = entry.value
        elif entry.kind is EntryKind.TABLE:
            target = _table_setup(entry.value)
        else:
            _logger.warning("Skipping immediate config block #%d (unexpected %s value)", entry.index, entry.kind.value)
            continue

        _logger.debug("Executing immediate config block #%d", entry.index)
        invocation = evaluator.invoke(target)
        if invocation.ok:
            succeeded += 1
        else:
            log_failure(
                _logger,
                f"Error executing immediate config block #{entry.index}",
                invocation.error,
                entry.text,
            )
    return succeeded


def _table_setup(value: object) -> Callable[[], object]:
    if isinstance(value, Mapping):
        return value["setup"]
    return getattr(value, "setup")


__all__ = ["ScheduleResult", "Scheduler", "execute_immediate"]
