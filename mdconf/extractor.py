"""Fenced code block extraction from Markdown documents."""

from __future__ import annotations

import json
import re
import textwrap
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import EmptyDocumentsError, NoDocumentsError
from .logging import get_logger
from .models import Block, Section

_FENCE_OPEN = re.compile(r"^(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_LANGUAGE_TOKEN = re.compile(r"[^\s`~{]+")
_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+(?P<title>.*?)\s*#*\s*$")
_MAIN_HEADING = re.compile(r"\bmain\b", re.IGNORECASE)
_PLUGINS_HEADING = re.compile(r"\bplugins?\b", re.IGNORECASE)

_logger = get_logger("extractor")


def normalize_source(text: str) -> str:
    """Trim whitespace and drop byte-order marks and carriage returns."""
    return text.replace("\ufeff", "").replace("\r", "").strip()


def discover_documents(root: Path, document: str = "") -> List[Path]:
    """Return the Markdown documents to scan in deterministic order.

    ``document`` names a single document to scan instead of the whole
    directory; the empty string means "scan all".
    """
    root = root.expanduser()
    if document:
        candidate = Path(document).expanduser()
        if not candidate.is_absolute():
            candidate = root / candidate
        if not candidate.is_file():
            raise NoDocumentsError(f"Configured document not found: {candidate}")
        return [candidate]
    if not root.is_dir():
        raise NoDocumentsError(f"Documents directory not found: {root}")
    documents = sorted(path for path in root.glob("*.md") if path.is_file())
    if not documents:
        raise NoDocumentsError(f"No .md documents found in {root}")
    return documents


def read_documents(paths: Sequence[Path]) -> List[Tuple[Path, str]]:
    """Read documents, skipping blank ones; all-blank input is an error."""
    loaded: List[Tuple[Path, str]] = []
    for path in paths:
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            _logger.warning("Skipping empty document %s", path)
            continue
        loaded.append((path, text))
    if paths and not loaded:
        raise EmptyDocumentsError(f"All {len(paths)} document(s) are empty")
    return loaded


class BlockExtractor:
    """Yields fenced blocks tagged with one of the configured languages."""

    def __init__(self, languages: Iterable[str] = ("python",)) -> None:
        self.languages = {language.lower() for language in languages}

    def extract(self, documents: Sequence[Tuple[Path, str]]) -> List[Block]:
        """Extract blocks from ``(path, text)`` pairs, numbering them from 1."""
        blocks: List[Block] = []
        for path, text in documents:
            found = 0
            for raw_text, section in self.extract_lines(text.splitlines()):
                blocks.append(
                    Block(
                        index=len(blocks) + 1,
                        raw_text=raw_text,
                        normalized_text=normalize_source(raw_text),
                        section=section,
                        document=path,
                    )
                )
                found += 1
            _logger.debug("Found %d code block(s) in %s", found, path)
        _logger.info("Found %d code blocks across %d document(s)", len(blocks), len(documents))
        return blocks

    def extract_text(self, text: str) -> List[str]:
        """Return the block texts of a single document."""
        return [raw_text for raw_text, _ in self.extract_lines(text.splitlines())]

    def extract_lines(self, lines: Sequence[str]) -> Iterator[Tuple[str, Section]]:
        """Yield ``(text, section)`` for every matching fence in ``lines``."""
        section = Section.UNSPECIFIED
        index = 0
        while index < len(lines):
            line = lines[index]
            stripped = line.strip()
            match = _FENCE_OPEN.match(stripped)
            if match is None:
                section = _section_for_heading(line, section)
                index += 1
                continue

            fence = match.group("fence")
            info = match.group("info")
            language = _language_of(info)

            if fence.startswith("`") and "```" in info:
                if self._accepts(language):
                    yield _single_line_content(stripped, fence, language or ""), section
                index += 1
                continue

            body: List[str] = []
            index += 1
            while index < len(lines) and not _is_closing_fence(lines[index], fence):
                body.append(lines[index])
                index += 1
            index += 1  # closing fence, or past the end for unterminated fences
            if self._accepts(language):
                yield textwrap.dedent("\n".join(body)).strip(), section

    def _accepts(self, language: Optional[str]) -> bool:
        return language is not None and language.lower() in self.languages


def dump_blocks(blocks: Sequence[Block], path: Path) -> bool:
    """Write every block's text to ``path`` for inspection."""
    payload = [
        {
            "index": block.index,
            "section": block.section.value,
            "document": str(block.document) if block.document else None,
            "text": block.raw_text,
        }
        for block in blocks
    ]
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    except OSError as exc:
        _logger.error("Unable to write detected blocks to %s: %s", path, exc)
        return False
    _logger.debug("Saved detected code blocks to %s", path)
    return True


def _language_of(info: str) -> Optional[str]:
    match = _LANGUAGE_TOKEN.match(info.strip())
    return match.group(0) if match else None


def _single_line_content(stripped: str, fence: str, language: str) -> str:
    prefix = rf"^{re.escape(fence)}\s*{re.escape(language)}"
    match = re.match(prefix + r"\s*(.*?)\s*`{3,}$", stripped)
    if match:
        return match.group(1).strip()
    # Malformed single-line fence: drop the opening tag and keep the rest.
    return re.sub(prefix, "", stripped, count=1).strip()


def _is_closing_fence(line: str, fence: str) -> bool:
    stripped = line.strip()
    return (
        len(stripped) >= len(fence)
        and stripped.startswith(fence[0] * len(fence))
        and set(stripped) == {fence[0]}
    )


def _section_for_heading(line: str, current: Section) -> Section:
    match = _HEADING.match(line)
    if match is None:
        return current
    title = match.group("title")
    if _MAIN_HEADING.search(title):
        return Section.MAIN
    if _PLUGINS_HEADING.search(title):
        return Section.PLUGINS
    return current


__all__ = [
    "BlockExtractor",
    "discover_documents",
    "dump_blocks",
    "normalize_source",
    "read_documents",
]
