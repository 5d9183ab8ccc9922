"""Installer collaborator contract and a state-file backed implementation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence, Set

from .logging import get_logger
from .models import ComponentSpec

_STATE_VERSION = 1

_logger = get_logger("installer")


class Installer(Protocol):
    """Operations the pipeline needs from whatever installs components."""

    def reconcile(self, specs: Sequence[ComponentSpec]) -> Set[str]:
        """Install ``specs`` and return every installed identifier."""

    def on_first_load_complete(self, callback: Callable[[], None]) -> None:
        """Register ``callback`` to run once the first load has finished."""

    def remove(self, identifier: str) -> None:
        """Uninstall the component tracked as ``identifier``."""


class StateFileInstaller:
    """Tracks managed installs in a JSON state file.

    Nothing is downloaded: ``reconcile`` records the declared components and
    ``load`` stands in for a component finishing its load by running the
    spec's setup actions. Manual specs are loaded but never recorded, since
    they are managed outside this tool.
    """

    def __init__(self, path: Optional[Path]) -> None:
        self.path = path
        self._installed: Set[str] = set()
        self._callbacks: List[Callable[[], None]] = []
        self._load_fired = False
        if self.path is not None:
            self._installed = self._read(self.path)

    @property
    def installed(self) -> Set[str]:
        return set(self._installed)

    def reconcile(self, specs: Sequence[ComponentSpec]) -> Set[str]:
        for spec in specs:
            key = spec.desired_key
            if key is None or spec.manual:
                continue
            if key not in self._installed:
                _logger.info("Installing component %s", key)
                self._installed.add(key)
        self._persist()
        return set(self._installed)

    def on_first_load_complete(self, callback: Callable[[], None]) -> None:
        if self._load_fired:
            callback()
            return
        self._callbacks.append(callback)

    def remove(self, identifier: str) -> None:
        if identifier not in self._installed:
            raise KeyError(f"Component is not installed: {identifier}")
        self._installed.discard(identifier)
        self._persist()

    def load(self, spec: ComponentSpec) -> None:
        """Signal that ``spec`` finished loading."""
        _logger.debug("Loading component %s", spec.identifier or "<anonymous>")
        spec.run_setup()

    def load_all(self, specs: Sequence[ComponentSpec]) -> None:
        """Load every spec, then fire the first-load callbacks once."""
        for spec in specs:
            self.load(spec)
        if self._load_fired:
            return
        self._load_fired = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    # ------------------------------------------------------------------
    # Internal helpers

    def _read(self, path: Path) -> Set[str]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return set()
        except (OSError, ValueError) as exc:
            _logger.warning("Ignoring unreadable install state %s: %s", path, exc)
            return set()
        if not isinstance(data, dict) or data.get("version") != _STATE_VERSION:
            return set()
        installed = data.get("installed")
        if not isinstance(installed, list):
            return set()
        return {item for item in installed if isinstance(item, str)}

    def _persist(self) -> None:
        if self.path is None:
            return
        payload = {"version": _STATE_VERSION, "installed": sorted(self._installed)}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            _logger.error("Unable to write install state %s: %s", self.path, exc)


__all__ = ["Installer", "StateFileInstaller"]
