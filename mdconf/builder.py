"""Evaluates classified blocks into component specs and setup entries."""

from __future__ import annotations

from typing import Any, List, Mapping, Sequence, Tuple

from .classifier import ResultShape, has_setup, inspect_result, is_spec_like
from .errors import CompileError
from .evaluator import Evaluator
from .logging import get_logger, log_failure
from .models import BlockKind, ClassifiedBlock, ComponentSpec, EntryKind, SetupEntry

_RESERVED_KEYS = {"source", "path", "import", "config", "manual"}

_logger = get_logger("builder")


def spec_from_value(value: Any, *, manual: bool = False, block_index: int | None = None) -> ComponentSpec:
    """Convert a spec-like string or mapping into a :class:`ComponentSpec`."""
    if isinstance(value, str):
        return ComponentSpec(source=value, manual=manual, block_index=block_index)

    source = value.get("source")
    path = value.get("path")
    import_name = value.get("import")
    config = value.get("config")
    attributes = {key: item for key, item in value.items() if key not in _RESERVED_KEYS}
    if config is not None and not callable(config):
        attributes["config"] = config
        config = None
    return ComponentSpec(
        source=source if isinstance(source, str) and source else None,
        path=str(path) if path else None,
        import_name=str(import_name) if import_name else None,
        attributes=attributes,
        manual=manual or bool(value.get("manual")),
        config=config,
        block_index=block_index,
    )


def _setup_closure(value: Any):
    setup = value.get("setup") if isinstance(value, Mapping) else getattr(value, "setup")

    def _run_setup() -> None:
        setup()

    return _run_setup


class SpecBuilder:
    """Turns classified blocks into ordered specs and free-form entries."""

    def __init__(self, evaluator: Evaluator | None = None, convention: str = "spec") -> None:
        self.evaluator = evaluator or Evaluator()
        self.convention = convention

    def build(self, classified: Sequence[ClassifiedBlock]) -> Tuple[List[ComponentSpec], List[SetupEntry]]:
        specs: List[ComponentSpec] = []
        entries: List[SetupEntry] = []
        for item in classified:
            if item.kind is BlockKind.DISABLED:
                continue
            if item.kind is BlockKind.BARE_REFERENCE:
                self._build_bare_reference(item, specs, entries)
            elif item.kind is BlockKind.COMPONENT_SPEC:
                self._build_component_spec(item, item.body, specs, entries)
            elif item.kind is BlockKind.EXTERNAL_SETUP:
                self._build_external_setup(item, entries)
            else:
                self._add_entry(entries, EntryKind.SOURCE, item.body, item.index)
                _logger.debug("Standalone config added from block #%d", item.index)

        _logger.info("Extracted %d component specs and %d config blocks", len(specs), len(entries))
        return specs, entries

    # ------------------------------------------------------------------
    # Internal helpers

    def _build_bare_reference(
        self,
        item: ClassifiedBlock,
        specs: List[ComponentSpec],
        entries: List[SetupEntry],
    ) -> None:
        wrapped = f"[{{'source': {item.body!r}}}]"
        _logger.debug("Auto-wrapping bare component reference: %s", item.body)
        self._build_component_spec(item, wrapped, specs, entries)

    def _build_component_spec(
        self,
        item: ClassifiedBlock,
        source: str,
        specs: List[ComponentSpec],
        entries: List[SetupEntry],
    ) -> None:
        ok, result = self._evaluate(item, source, export=self.convention, label="component spec")
        if not ok:
            return

        manual = item.block.manual
        shape = inspect_result(result)
        if shape is ResultShape.LIST:
            if isinstance(result, (set, frozenset)):
                # {"a/b", "c/d"} has no order of its own
                result = sorted(result, key=str)
            for element in result:
                if is_spec_like(element):
                    specs.append(spec_from_value(element, manual=manual, block_index=item.index))
                    _logger.info("Component spec added from nested item in block #%d", item.index)
                else:
                    self._add_entry(entries, _entry_kind(element), element, item.index)
                    _logger.debug("Nested item in block #%d treated as standalone config", item.index)
        elif shape is ResultShape.SPEC_LIKE:
            specs.append(spec_from_value(result, manual=manual, block_index=item.index))
            _logger.info("Component spec added from block #%d", item.index)
        elif shape is ResultShape.SETUP_CALLABLE:
            self._add_entry(entries, EntryKind.CALLABLE, _setup_closure(result), item.index)
            _logger.info("Extracted config function from block #%d", item.index)
        elif shape is ResultShape.OPAQUE:
            _logger.warning(
                "Unrecognized component spec in block #%d; keeping it as standalone config: %r",
                item.index,
                result,
            )
            self._add_entry(entries, EntryKind.OPAQUE, result, item.index)
        else:
            _logger.error(
                "Component spec block #%d evaluated to %r, expected a list or mapping\nSource:\n%s",
                item.index,
                result,
                source,
            )

    def _build_external_setup(self, item: ClassifiedBlock, entries: List[SetupEntry]) -> None:
        ok, result = self._evaluate(item, item.body, export="config", label="external config")
        if not ok:
            return
        if not callable(result):
            _logger.error(
                "Error processing external config block #%d: expected a callable, got %r\nSource:\n%s",
                item.index,
                result,
                item.body,
            )
            return
        self._add_entry(entries, EntryKind.CALLABLE, result, item.index)
        _logger.info("External config function added from block #%d", item.index)

    def _evaluate(self, item: ClassifiedBlock, source: str, *, export: str, label: str) -> Tuple[bool, Any]:
        try:
            unit = self.evaluator.compile(source, export=export, filename=f"<block {item.index}>")
        except CompileError as exc:
            log_failure(_logger, f"Error compiling {label} block #{item.index}", exc, source)
            return False, None
        invocation = self.evaluator.invoke(unit)
        if not invocation.ok:
            log_failure(_logger, f"Error running {label} block #{item.index}", invocation.error, source)
            return False, None
        return True, invocation.value

    @staticmethod
    def _add_entry(entries: List[SetupEntry], kind: EntryKind, value: Any, block_index: int) -> None:
        entries.append(SetupEntry(index=len(entries) + 1, kind=kind, value=value, block_index=block_index))


def _entry_kind(value: Any) -> EntryKind:
    if callable(value):
        return EntryKind.CALLABLE
    if has_setup(value):
        return EntryKind.TABLE
    return EntryKind.OPAQUE


__all__ = ["SpecBuilder", "spec_from_value"]
