"""Core data models shared across mdconf pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

from .logging import get_logger, log_failure

_logger = get_logger("models")


class Section(str, Enum):
    """Document section a block was found under."""

    MAIN = "main"
    PLUGINS = "plugins"
    UNSPECIFIED = "unspecified"


class BlockKind(str, Enum):
    """Classification assigned to a block by the classifier."""

    DISABLED = "disabled"
    BARE_REFERENCE = "bare-reference"
    COMPONENT_SPEC = "component-spec"
    EXTERNAL_SETUP = "external-setup"
    FREE_FORM = "free-form"


class EntryKind(str, Enum):
    """Shape of a free-form setup entry."""

    CALLABLE = "callable"
    SOURCE = "source"
    TABLE = "table"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class Block:
    """One fenced region of embedded source extracted from a document."""

    index: int
    raw_text: str
    normalized_text: str
    section: Section = Section.UNSPECIFIED
    disabled: bool = False
    manual: bool = False
    document: Optional[Path] = None


@dataclass(frozen=True)
class ClassifiedBlock:
    """A block with its kind and the text handed to evaluation."""

    block: Block
    kind: BlockKind
    body: str

    @property
    def index(self) -> int:
        return self.block.index


@dataclass
class ComponentSpec:
    """Declarative record describing one installable component."""

    source: Optional[str] = None
    path: Optional[str] = None
    import_name: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    manual: bool = False
    config: Optional[Callable[..., Any]] = None
    deferred: List[Callable[[], Any]] = field(default_factory=list)
    block_index: Optional[int] = None

    @property
    def identifier(self) -> Optional[str]:
        """Primary reference, falling back to the path then the import marker."""
        return self.source or self.path or self.import_name

    @property
    def desired_key(self) -> Optional[str]:
        """Identifier as tracked by the installer; path/import specs are tagged."""
        if self.source:
            return self.source
        if self.import_name:
            return f"(import) {self.import_name}"
        if self.path:
            return f"(dir) {self.path}"
        return None

    def run_setup(self, *args: Any) -> None:
        """Run the spec's own config hook, then each deferred action in order.

        Every action is isolated: a failure is logged and the remaining actions
        still run.
        """
        label = self.identifier or "<anonymous>"
        if self.config is not None:
            try:
                self.config(*args)
            except (Exception, SystemExit) as exc:
                log_failure(_logger, f"Error in original config for {label}", exc)
        for position, action in enumerate(self.deferred, start=1):
            try:
                action()
            except (Exception, SystemExit) as exc:
                log_failure(_logger, f"Error executing deferred config #{position} for {label}", exc)
            else:
                _logger.debug("Deferred config #%d for %s executed successfully", position, label)


@dataclass
class SetupEntry:
    """Imperative configuration that is not itself a component declaration."""

    index: int
    kind: EntryKind
    value: Any
    block_index: Optional[int] = None

    @property
    def text(self) -> Optional[str]:
        """Source text for ``SOURCE`` entries, ``None`` otherwise."""
        return self.value if self.kind is EntryKind.SOURCE else None


@dataclass
class ChangeReport:
    """Block indices that changed or disappeared since the previous run."""

    changed: List[int] = field(default_factory=list)
    removed: List[int] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changed or self.removed)


@dataclass
class RemovalOutcome:
    """Result of asking the installer to remove one component."""

    identifier: str
    removed: bool
    error: Optional[str] = None
    attempts: int = 1


@dataclass
class PipelineContext:
    """Outputs of each pipeline stage for a single run."""

    documents: List[Path] = field(default_factory=list)
    blocks: List[Block] = field(default_factory=list)
    classified: List[ClassifiedBlock] = field(default_factory=list)
    changes: ChangeReport = field(default_factory=ChangeReport)
    specs: List[ComponentSpec] = field(default_factory=list)
    entries: List[SetupEntry] = field(default_factory=list)
    associations: Dict[int, str] = field(default_factory=dict)
    immediate: List[SetupEntry] = field(default_factory=list)
    installed: Set[str] = field(default_factory=set)
    desired: Set[str] = field(default_factory=set)
    removals: List[RemovalOutcome] = field(default_factory=list)


__all__ = [
    "Block",
    "BlockKind",
    "ChangeReport",
    "ClassifiedBlock",
    "ComponentSpec",
    "EntryKind",
    "PipelineContext",
    "RemovalOutcome",
    "Section",
    "SetupEntry",
]
