"""CLI entrypoints for mdconf commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import load_config
from .errors import ConfigError, MdConfError
from .installer import StateFileInstaller
from .logging import configure_logging
from .pipeline import Pipeline


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Directory holding the Markdown documents (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdconf",
        description="Build application configuration from code blocks in Markdown documents.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    apply_parser = subparsers.add_parser(
        "apply",
        help="Extract, evaluate and apply every configuration block.",
    )
    _add_verbose_option(apply_parser, suppress_default=True)
    _add_path_argument(apply_parser)
    apply_parser.add_argument(
        "--document",
        default=None,
        help="Scan a single document instead of every *.md file.",
    )

    blocks_parser = subparsers.add_parser(
        "blocks",
        help="List detected code blocks and how they are classified.",
    )
    _add_verbose_option(blocks_parser, suppress_default=True)
    _add_path_argument(blocks_parser)

    status_parser = subparsers.add_parser(
        "status",
        help="Show blocks changed since the last apply without recording them.",
    )
    _add_verbose_option(status_parser, suppress_default=True)
    _add_path_argument(status_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for mdconf commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(Path(args.path))
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")
    if getattr(args, "document", None) is not None:
        config.document = args.document

    configure_logging(verbose=bool(args.verbose), log_file=config.log_file)

    if args.command == "apply":
        installer = StateFileInstaller(config.installed_path)
        pipeline = Pipeline(config, installer=installer)
        try:
            context = pipeline.run()
        except MdConfError as exc:
            parser.exit(1, f"mdconf apply failed: {exc}\n")
        installer.load_all(context.specs)
        print(
            f"Applied {len(context.specs)} component spec(s) and "
            f"{len(context.entries)} config block(s) from {len(context.documents)} document(s)"
        )
        if context.changes.has_changes:
            print(
                f"Changed blocks: {_format_indices(context.changes.changed)}; "
                f"removed blocks: {_format_indices(context.changes.removed)}"
            )
        for outcome in context.removals:
            status = "removed" if outcome.removed else f"failed ({outcome.error})"
            if outcome.attempts > 1:
                status += f" after {outcome.attempts} attempts"
            print(f"Cleanup {outcome.identifier}: {status}")
    elif args.command == "blocks":
        try:
            context = Pipeline(config).scan()
        except MdConfError as exc:
            parser.exit(1, f"mdconf blocks failed: {exc}\n")
        for item in context.classified:
            suffix = " [manual]" if item.block.manual else ""
            first_line = item.body.splitlines()[0] if item.body else ""
            print(f"#{item.index} {item.kind.value} ({item.block.section.value}){suffix}: {first_line}")
    elif args.command == "status":
        try:
            report = Pipeline(config).status()
        except MdConfError as exc:
            parser.exit(1, f"mdconf status failed: {exc}\n")
        if not report.has_changes:
            print("Config blocks unchanged since last apply")
        else:
            print(f"Changed blocks: {_format_indices(report.changed)}")
            print(f"Removed blocks: {_format_indices(report.removed)}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _format_indices(indices: list[int]) -> str:
    return ", ".join(f"#{index}" for index in indices) if indices else "none"


if __name__ == "__main__":
    main(sys.argv[1:])
