"""Tests for turning classified blocks into specs and setup entries."""

from __future__ import annotations

from mdconf.builder import SpecBuilder, spec_from_value
from mdconf.classifier import BlockClassifier
from mdconf.evaluator import Evaluator
from mdconf.models import EntryKind
from tests._fixtures.docs_builder import make_block


def _build(*texts: str, evaluator: Evaluator | None = None):
    classifier = BlockClassifier()
    classified = [classifier.classify(make_block(text, index)) for index, text in enumerate(texts, start=1)]
    return SpecBuilder(evaluator or Evaluator()).build(classified)


def test_bare_reference_produces_one_spec() -> None:
    specs, entries = _build("owner/repo")

    assert [spec.identifier for spec in specs] == ["owner/repo"]
    assert specs[0].block_index == 1
    assert entries == []


def test_disabled_block_produces_nothing() -> None:
    specs, entries = _build("@ disable\nowner/repo")

    assert specs == []
    assert entries == []


def test_list_items_split_into_specs_and_entries() -> None:
    specs, entries = _build(
        "return [\n"
        "    'a/b',\n"
        "    {'source': 'c/d', 'branch': 'main'},\n"
        "    {'path': '~/src/tool'},\n"
        "    {'theme': 'dark'},\n"
        "    {'setup': lambda: None},\n"
        "]"
    )

    assert [spec.identifier for spec in specs] == ["a/b", "c/d", "~/src/tool"]
    assert specs[1].attributes == {"branch": "main"}
    assert [entry.kind for entry in entries] == [EntryKind.OPAQUE, EntryKind.TABLE]
    assert [entry.index for entry in entries] == [1, 2]


def test_manual_marker_propagates_through_list() -> None:
    specs, _ = _build("@ manual\nspec = ['a/b', {'source': 'c/d'}]")

    assert [spec.manual for spec in specs] == [True, True]


def test_single_spec_mapping_and_config_hook() -> None:
    calls = []
    specs, _ = _build(
        "spec = {'import': 'plugins.editor', 'config': lambda: calls.append('configured')}",
        evaluator=Evaluator({"calls": calls}),
    )

    assert len(specs) == 1
    assert specs[0].identifier == "plugins.editor"
    specs[0].run_setup()
    assert calls == ["configured"]


def test_setup_table_becomes_closure_entry() -> None:
    calls = []
    _, entries = _build(
        "return {'setup': lambda: calls.append('setup')}",
        evaluator=Evaluator({"calls": calls}),
    )

    assert [entry.kind for entry in entries] == [EntryKind.CALLABLE]
    entries[0].value()
    assert calls == ["setup"]


def test_unrecognized_mapping_is_kept_as_opaque_entry() -> None:
    specs, entries = _build("spec = {'theme': 'dark'}")

    assert specs == []
    assert entries[0].kind is EntryKind.OPAQUE
    assert entries[0].value == {"theme": "dark"}


def test_external_setup_function_becomes_entry() -> None:
    _, entries = _build("def config():\n    return 'configured'")

    assert entries[0].kind is EntryKind.CALLABLE
    assert entries[0].value() == "configured"


def test_failing_blocks_are_dropped_without_stopping_the_run() -> None:
    specs, entries = _build(
        "spec = [1 / 0]",
        "spec = [",
        "def config(:\n    pass",
        "return {} or None",
        "owner/repo",
        "settings = {}",
    )

    assert [spec.identifier for spec in specs] == ["owner/repo"]
    assert [entry.kind for entry in entries] == [EntryKind.SOURCE]
    assert entries[0].value == "settings = {}"
    assert entries[0].block_index == 6


def test_free_form_entry_keeps_body_without_markers() -> None:
    _, entries = _build("# @ manual\nprint('hi')")

    assert entries[0].text == "print('hi')"


def test_spec_from_value_keeps_non_callable_config_as_attribute() -> None:
    spec = spec_from_value({"source": "a/b", "config": True, "manual": True})

    assert spec.config is None
    assert spec.attributes == {"config": True}
    assert spec.manual is True
    assert spec.desired_key == "a/b"


def test_set_literal_produces_specs_in_sorted_order() -> None:
    specs, entries = _build("return {'c/d', 'a/b'}")

    assert [spec.identifier for spec in specs] == ["a/b", "c/d"]
    assert entries == []


def test_system_exit_in_spec_block_is_dropped() -> None:
    specs, _ = _build("return [__import__('sys').exit(2)]", "owner/repo")

    assert [spec.identifier for spec in specs] == ["owner/repo"]
