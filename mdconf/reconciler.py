"""Computes the desired component set and removes stale installs."""

from __future__ import annotations

from typing import Iterable, List, Sequence, Set

from .installer import Installer
from .logging import get_logger, log_failure
from .models import ComponentSpec, RemovalOutcome

_logger = get_logger("reconciler")


def desired_set(specs: Iterable[ComponentSpec]) -> Set[str]:
    """Return the installer keys of every spec not marked manual."""
    desired: Set[str] = set()
    for spec in specs:
        if spec.manual:
            _logger.debug("Skipping cleanup for manual component spec: %s", spec.identifier or "unknown")
            continue
        key = spec.desired_key
        if key:
            desired.add(key)
    return desired


def plan_removals(installed: Iterable[str], desired: Set[str]) -> List[str]:
    """Return installed identifiers missing from ``desired``.

    An empty desired set means the declaration is still pending, so nothing
    is ever planned for removal from it.
    """
    if not desired:
        _logger.info("Desired component set is empty; skipping cleanup")
        return []
    return sorted(set(installed) - desired)


class Reconciler:
    """Asks the installer to remove components no longer declared."""

    def __init__(self, installer: Installer) -> None:
        self.installer = installer

    def cleanup(self, specs: Sequence[ComponentSpec], installed: Iterable[str]) -> List[RemovalOutcome]:
        installed = set(installed)
        desired = desired_set(specs)
        _logger.debug("Desired component set: %s", sorted(desired))
        _logger.debug("Installed components: %s", sorted(installed))

        outcomes: List[RemovalOutcome] = [self._remove(identifier) for identifier in plan_removals(installed, desired)]

        # Removals that failed get one more attempt once the first pass is done.
        for position, outcome in enumerate(outcomes):
            if outcome.removed:
                continue
            _logger.info("Retrying removal of component: %s", outcome.identifier)
            outcomes[position] = self._remove(outcome.identifier, attempt=2)
        return outcomes

    def _remove(self, identifier: str, attempt: int = 1) -> RemovalOutcome:
        try:
            self.installer.remove(identifier)
        except (Exception, SystemExit) as exc:
            log_failure(_logger, f"Failed to remove unused component {identifier}", exc)
            return RemovalOutcome(identifier=identifier, removed=False, error=str(exc), attempts=attempt)
        _logger.info("Removed unused component: %s", identifier)
        return RemovalOutcome(identifier=identifier, removed=True, attempts=attempt)


__all__ = ["Reconciler", "desired_set", "plan_removals"]
