"""Pipeline orchestration: documents in, configuration applied."""

from __future__ import annotations

import logging
from typing import List, Optional

from .associator import AssociationRecord, associate
from .builder import SpecBuilder
from .classifier import BlockClassifier
from .config import MdConfConfig
from .evaluator import Evaluator
from .extractor import BlockExtractor, discover_documents, dump_blocks, read_documents
from .installer import Installer, StateFileInstaller
from .ledger import ChangeDetector, HashLedger
from .logging import get_logger, log_failure
from .models import Block, ChangeReport, PipelineContext
from .reconciler import Reconciler, desired_set
from .scheduler import Scheduler, execute_immediate


class Pipeline:
    """Runs extraction, classification, association, scheduling and cleanup.

    Only missing or empty documents abort a run; every later stage recovers
    from failures locally and logs them.
    """

    def __init__(
        self,
        config: MdConfConfig,
        installer: Installer | None = None,
        evaluator: Evaluator | None = None,
    ) -> None:
        self.config = config
        self.installer = installer or StateFileInstaller(config.installed_path)
        self.evaluator = evaluator or Evaluator()
        self.extractor = BlockExtractor(config.languages)
        self.classifier = BlockClassifier(config.convention)
        self.builder = SpecBuilder(self.evaluator, config.convention)
        self.scheduler = Scheduler(self.evaluator, config.keymap_pattern)
        self.detector = ChangeDetector(HashLedger(config.ledger_path))
        self.logger = get_logger("pipeline")

    def extract(self, context: Optional[PipelineContext] = None) -> List[Block]:
        context = context if context is not None else PipelineContext()
        context.documents = discover_documents(self.config.root, self.config.document)
        context.blocks = self.extractor.extract(read_documents(context.documents))
        return context.blocks

    def status(self) -> ChangeReport:
        """Report changed and removed blocks without updating the ledger."""
        report, _ = self.detector.compare(self.extract())
        return report

    def scan(self) -> PipelineContext:
        """Extract and classify blocks without evaluating or persisting anything."""
        context = PipelineContext()
        self.extract(context)
        context.classified = self.classifier.classify_all(context.blocks)
        return context

    def run(self) -> PipelineContext:
        self.logger.info("Starting mdconf run for %s", self.config.root)
        context = PipelineContext()
        self.extract(context)

        if self.config.dump_blocks or self.logger.isEnabledFor(logging.DEBUG):
            dump_blocks(context.blocks, self.config.blocks_path)

        context.changes = self.detector.detect(context.blocks)
        context.classified = self.classifier.classify_all(context.blocks)
        context.specs, context.entries = self.builder.build(context.classified)
        self.logger.info(
            "Scanned %d component specs and %d config blocks",
            len(context.specs),
            len(context.entries),
        )

        context.associations = associate(
            context.specs,
            context.entries,
            word_boundary=self.config.word_boundary,
        )
        AssociationRecord(self.config.associations_path).persist(context.associations)

        schedule = self.scheduler.schedule(context.specs, context.entries, context.associations)
        context.immediate = schedule.immediate
        context.desired = desired_set(context.specs)

        try:
            context.installed = set(self.installer.reconcile(context.specs))
        except Exception as exc:
            log_failure(self.logger, "Installer failed to reconcile component specs", exc)
            context.installed = set()

        try:
            self.installer.on_first_load_complete(self._cleanup_callback(context))
        except Exception as exc:
            log_failure(self.logger, "Installer failed to register the cleanup callback", exc)

        execute_immediate(context.immediate, self.evaluator)
        self.logger.info("Done loading config")
        return context

    def _cleanup_callback(self, context: PipelineContext):
        reconciler = Reconciler(self.installer)
        fired = False

        def _cleanup() -> None:
            nonlocal fired
            if fired:
                return
            fired = True
            context.removals = reconciler.cleanup(context.specs, context.installed)

        return _cleanup


__all__ = ["Pipeline"]
