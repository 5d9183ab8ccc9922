"""End-to-end tests for the mdconf pipeline."""

from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from mdconf.errors import EmptyDocumentsError, NoDocumentsError
from mdconf.evaluator import Evaluator
from mdconf.installer import StateFileInstaller
from mdconf.models import BlockKind, RemovalOutcome
from mdconf.pipeline import Pipeline
from tests._fixtures.docs_builder import DocsBuilder

CONFIG_DOC = """
    # Config

    ```python
    a/b
    ```

    # Plugins

    ```python
    spec = [
        {'source': 'c/d', 'config': lambda: calls.append('c/d config')},
        {'source': 'm/x', 'manual': True},
    ]
    ```

    ## Options

    ```python
    settings['theme'] = 'dark'
    ```

    ```python
    calls.append('configured a/b')
    ```

    ```python
    # @ disable
    calls.append('disabled')
    ```
"""


def _pipeline(docs_builder: DocsBuilder, host: Dict[str, Any]) -> tuple[Pipeline, StateFileInstaller]:
    config = docs_builder.config()
    installer = StateFileInstaller(config.installed_path)
    return Pipeline(config, installer=installer, evaluator=Evaluator(host)), installer


def _seed_installed(docs_builder: DocsBuilder, installed: List[str]) -> None:
    path = docs_builder.config().installed_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"version": 1, "installed": installed}), encoding="utf-8")


def test_run_applies_configuration_and_cleans_up(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"config.md": CONFIG_DOC})
    _seed_installed(docs_builder, ["a/b", "old/plugin"])
    calls: List[str] = []
    settings: Dict[str, str] = {}
    pipeline, installer = _pipeline(docs_builder, {"calls": calls, "settings": settings})

    context = pipeline.run()

    assert [spec.identifier for spec in context.specs] == ["a/b", "c/d", "m/x"]
    assert context.specs[2].manual is True
    assert [item.kind for item in context.classified] == [
        BlockKind.BARE_REFERENCE,
        BlockKind.COMPONENT_SPEC,
        BlockKind.FREE_FORM,
        BlockKind.FREE_FORM,
        BlockKind.DISABLED,
    ]
    assert context.changes.changed == [1, 2, 3, 4, 5]
    assert context.associations == {2: "a/b"}
    assert [entry.index for entry in context.immediate] == [1]
    assert context.desired == {"a/b", "c/d"}
    assert context.installed == {"a/b", "c/d", "old/plugin"}
    assert settings == {"theme": "dark"}
    assert calls == []

    installer.load_all(context.specs)

    assert calls == ["configured a/b", "c/d config"]
    assert context.removals == [RemovalOutcome(identifier="old/plugin", removed=True)]
    assert installer.installed == {"a/b", "c/d"}

    config = docs_builder.config()
    assert json.loads(config.associations_path.read_text(encoding="utf-8")) == {"2": "a/b"}
    assert sorted(json.loads(config.ledger_path.read_text(encoding="utf-8"))) == ["1", "2", "3", "4", "5"]


def test_second_run_without_edits_reports_no_changes(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"config.md": CONFIG_DOC})
    host = {"calls": [], "settings": {}}
    first, _ = _pipeline(docs_builder, host)
    first.run()

    second, _ = _pipeline(docs_builder, host)
    context = second.run()

    assert context.changes.changed == []
    assert context.changes.removed == []


def test_status_reports_edits_without_recording_them(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"config.md": CONFIG_DOC})
    pipeline, _ = _pipeline(docs_builder, {"calls": [], "settings": {}})
    pipeline.run()

    docs_builder.write({"config.md": CONFIG_DOC.replace("'dark'", "'light'")})

    assert pipeline.status().changed == [3]
    assert pipeline.status().changed == [3]


def test_scan_classifies_without_evaluating(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"config.md": CONFIG_DOC})
    calls: List[str] = []
    pipeline, _ = _pipeline(docs_builder, {"calls": calls, "settings": {}})

    context = pipeline.scan()

    assert len(context.classified) == 5
    assert context.specs == []
    assert calls == []
    assert not docs_builder.config().ledger_path.exists()


def test_failing_blocks_do_not_abort_the_run(docs_builder: DocsBuilder) -> None:
    docs_builder.write(
        {
            "config.md": """
                ```python
                spec = [broken
                ```

                ```python
                raise RuntimeError('boom')
                ```

                ```python
                calls.append('still runs')
                ```
            """
        }
    )
    calls: List[str] = []
    pipeline, _ = _pipeline(docs_builder, {"calls": calls})

    context = pipeline.run()

    assert context.specs == []
    assert calls == ["still runs"]


def test_cleanup_waits_for_first_load_and_runs_once(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"config.md": "```python\na/b\n```\n"})
    _seed_installed(docs_builder, ["a/b", "old/plugin"])
    pipeline, installer = _pipeline(docs_builder, {})

    context = pipeline.run()

    assert context.removals == []
    installer.load_all(context.specs)
    installer.load_all(context.specs)
    assert [outcome.identifier for outcome in context.removals] == ["old/plugin"]


def test_run_requires_documents(docs_builder: DocsBuilder) -> None:
    pipeline, _ = _pipeline(docs_builder, {})

    with pytest.raises(NoDocumentsError):
        pipeline.run()


def test_run_rejects_blank_documents(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"config.md": "\n   \n"})
    pipeline, _ = _pipeline(docs_builder, {})

    with pytest.raises(EmptyDocumentsError):
        pipeline.run()


def test_system_exit_in_a_block_does_not_end_the_run(docs_builder: DocsBuilder) -> None:
    docs_builder.write(
        {
            "config.md": """
                ```python
                raise SystemExit(3)
                ```

                ```python
                calls.append('after')
                ```
            """
        }
    )
    calls: List[str] = []
    pipeline, _ = _pipeline(docs_builder, {"calls": calls})

    pipeline.run()

    assert calls == ["after"]


class _UnregistrableInstaller(StateFileInstaller):
    def on_first_load_complete(self, callback) -> None:
        raise RuntimeError("callbacks unavailable")


def test_callback_registration_failure_is_not_fatal(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"config.md": "```python\na/b\n```\n\n```python\ncalls.append('ran')\n```\n"})
    config = docs_builder.config()
    calls: List[str] = []
    installer = _UnregistrableInstaller(config.installed_path)

    context = Pipeline(config, installer=installer, evaluator=Evaluator({"calls": calls})).run()

    assert [spec.identifier for spec in context.specs] == ["a/b"]
    assert calls == ["ran"]
    assert context.removals == []
