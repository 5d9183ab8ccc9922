"""Tests for block classification."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from mdconf.classifier import (
    BlockClassifier,
    ResultShape,
    inspect_result,
    is_bare_reference,
    is_spec_like,
    read_markers,
)
from mdconf.models import BlockKind
from tests._fixtures.docs_builder import make_block


@pytest.mark.parametrize(
    "text, kind",
    [
        ("owner/repo", BlockKind.BARE_REFERENCE),
        ("@ disable\nowner/repo", BlockKind.DISABLED),
        ("# @ disable\nspec = [{'source': 'a/b'}]", BlockKind.DISABLED),
        ("return [{'source': 'a/b'}]", BlockKind.COMPONENT_SPEC),
        ("return {'source': 'a/b'}", BlockKind.COMPONENT_SPEC),
        ("spec = {\n    'source': 'a/b',\n}", BlockKind.COMPONENT_SPEC),
        ("def config():\n    pass", BlockKind.EXTERNAL_SETUP),
        ("settings['theme'] = 'dark'", BlockKind.FREE_FORM),
        ("return 'a/b'", BlockKind.FREE_FORM),
        ("def helper():\n    return 'x/y'", BlockKind.FREE_FORM),
    ],
)
def test_classification_follows_rule_order(text: str, kind: BlockKind) -> None:
    assert BlockClassifier().classify(make_block(text)).kind is kind


def test_bare_reference_requires_single_line_and_separator() -> None:
    assert is_bare_reference("owner/repo")
    assert not is_bare_reference("owner/repo\nother/repo")
    assert not is_bare_reference("plain_name")
    assert not is_bare_reference("return 'a/b'")
    assert not is_bare_reference("spec = 'a/b'")
    assert not is_bare_reference("def f(): return 'a/b'")


def test_manual_marker_is_stripped_and_flagged() -> None:
    result = BlockClassifier().classify(make_block("@ manual\nspec = {'source': 'x/y'}"))

    assert result.kind is BlockKind.COMPONENT_SPEC
    assert result.block.manual is True
    assert result.body == "spec = {'source': 'x/y'}"


def test_markers_are_read_in_any_order() -> None:
    markers, body = read_markers("# @ manual\n@ disable\nowner/repo")

    assert markers == ["manual", "disable"]
    assert body == "owner/repo"


def test_custom_convention_name() -> None:
    classifier = BlockClassifier(convention="plugins")

    assert classifier.classify(make_block("plugins = ['a/b']")).kind is BlockKind.COMPONENT_SPEC
    assert classifier.classify(make_block("spec = [\n    'a/b',\n]")).kind is BlockKind.FREE_FORM


def test_classification_is_idempotent() -> None:
    classifier = BlockClassifier()
    block = make_block("@ manual\nreturn [{'source': 'a/b'}]")

    assert classifier.classify(block) == classifier.classify(block)


def test_is_spec_like_predicate() -> None:
    assert is_spec_like("a/b")
    assert is_spec_like({"source": "a/b"})
    assert is_spec_like({"path": "~/src/tool"})
    assert is_spec_like({"import": "plugins.editor"})
    assert is_spec_like({"config": lambda: None})
    assert not is_spec_like("")
    assert not is_spec_like({"source": ""})
    assert not is_spec_like({"setup": lambda: None})
    assert not is_spec_like(3)


def test_inspect_result_tags_values() -> None:
    assert inspect_result([{"source": "a/b"}]) is ResultShape.LIST
    assert inspect_result({"source": "a/b"}) is ResultShape.SPEC_LIKE
    assert inspect_result({"setup": lambda: None}) is ResultShape.SETUP_CALLABLE
    assert inspect_result(SimpleNamespace(setup=lambda: None)) is ResultShape.SETUP_CALLABLE
    assert inspect_result({"theme": "dark"}) is ResultShape.OPAQUE
    assert inspect_result(None) is ResultShape.INVALID
    assert inspect_result("a/b") is ResultShape.INVALID


@pytest.mark.parametrize(
    "text, kind, manual",
    [
        ("@disable_warnings\ndef helper():\n    return 1", BlockKind.FREE_FORM, False),
        ("@manual_retry\ndef fetch():\n    return 'a/b'", BlockKind.FREE_FORM, False),
        ("@ manual\n@manual_retry\ndef fetch():\n    pass", BlockKind.FREE_FORM, True),
    ],
)
def test_decorators_are_not_marker_lines(text: str, kind: BlockKind, manual: bool) -> None:
    result = BlockClassifier().classify(make_block(text))

    assert result.kind is kind
    assert result.block.manual is manual
    assert result.body.startswith("@manual_retry" if manual else "@")
    assert "def " in result.body


def test_single_line_statements_with_slashes_stay_free_form() -> None:
    classifier = BlockClassifier()

    assert not is_bare_reference("settings['font'] = 'mono/12'")
    assert not is_bare_reference("ratio = 1 / 2")
    assert is_bare_reference("~/src/tool")
    assert classifier.classify(make_block("settings['font'] = 'mono/12'")).kind is BlockKind.FREE_FORM


def test_inspect_result_treats_sets_as_lists() -> None:
    assert inspect_result({"a/b"}) is ResultShape.LIST
    assert inspect_result(frozenset({"a/b"})) is ResultShape.LIST
