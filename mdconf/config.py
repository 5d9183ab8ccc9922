"""Configuration loading for mdconf (.mdconf.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".mdconf.yml"
DEFAULT_KEYMAP_PATTERN = r"\bkeymap\.set\s*\("


@dataclass
class MdConfConfig:
    """Represents the settings defined in .mdconf.yml."""

    root: Path
    document: str = ""
    languages: List[str] = field(default_factory=lambda: ["python"])
    state_dir: Optional[Path] = None
    convention: str = "spec"
    keymap_pattern: str = DEFAULT_KEYMAP_PATTERN
    word_boundary: bool = False
    log_file: Optional[Path] = None
    dump_blocks: bool = False

    @property
    def resolved_state_dir(self) -> Path:
        return self.state_dir if self.state_dir is not None else self.root / ".mdconf"

    @property
    def ledger_path(self) -> Path:
        return self.resolved_state_dir / "block_hashes.json"

    @property
    def associations_path(self) -> Path:
        return self.resolved_state_dir / "config_associations.json"

    @property
    def blocks_path(self) -> Path:
        return self.resolved_state_dir / "detected_blocks.json"

    @property
    def installed_path(self) -> Path:
        return self.resolved_state_dir / "installed.json"


def load_config(config_path: Path) -> MdConfConfig:
    """Load configuration from disk, returning defaults when none exists."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return MdConfConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = MdConfConfig(root=root)

    document = _as_str(data.get("document"))
    if document is not None:
        config.document = document

    languages = _as_str_list(data.get("languages"))
    if languages:
        config.languages = [language.lower() for language in languages]

    state_dir = _as_str(data.get("state_dir"))
    if state_dir:
        config.state_dir = (root / Path(state_dir).expanduser()).resolve()

    convention = _as_str(data.get("convention"))
    if convention:
        if not convention.isidentifier():
            raise ConfigError(f"convention must be a valid identifier, got {convention!r}")
        config.convention = convention

    keymap_pattern = _as_str(data.get("keymap_pattern"))
    if keymap_pattern:
        config.keymap_pattern = keymap_pattern

    word_boundary = _as_bool(data.get("word_boundary"))
    if word_boundary is not None:
        config.word_boundary = word_boundary

    log_file = _as_str(data.get("log_file"))
    if log_file:
        config.log_file = root / Path(log_file).expanduser()

    dump_blocks = _as_bool(data.get("dump_blocks"))
    if dump_blocks is not None:
        config.dump_blocks = dump_blocks

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = ["CONFIG_FILENAME", "MdConfConfig", "load_config"]
