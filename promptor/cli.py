"""Command-line front door for promptor.

Imports a folder, applies selections, and prints the assembled prompt or the
checkbox tree. With ``--watch`` the output is rewritten whenever the folder
changes on disk, until interrupted.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import config
from .aggregator import Aggregator
from .errors import PromptorError
from .file_tree_model import ImportSettings, SelectionState, parse_folder_list, parse_suffix_list
from .logging_setup import get_logger, setup_base_logger
from .templates import TemplateRegistry
from .watch import ChangeEventSource, PollingEventSource, WatchdogEventSource

logger = get_logger(__name__)

_CHECKBOXES = {
    SelectionState.ON: "[x]",
    SelectionState.OFF: "[ ]",
    SelectionState.PARTIAL: "[-]",
}


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="promptor",
        description="Concatenate selected files of a folder into one prompt for a chat model.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Folder to import. Defaults to the last imported folder.",
    )
    parser.add_argument(
        "-s",
        "--select",
        action="append",
        default=[],
        metavar="REL",
        help="Relative path to select (repeatable). Folders select everything below them.",
    )
    parser.add_argument("--all", action="store_true", help="Select every imported file (default without --select).")
    parser.add_argument("-t", "--template", default=None, help="Template name used to wrap the output.")
    parser.add_argument("--list-templates", action="store_true", help="List template names and exit.")
    parser.add_argument("--tree", action="store_true", help="Print the checkbox tree instead of the prompt.")
    parser.add_argument("--watch", action="store_true", help="Keep running and rewrite output on changes.")
    parser.add_argument("--poll", action="store_true", help="With --watch, poll instead of native notifications.")
    parser.add_argument("--no-subfolders", action="store_true", help="Only import files directly in the folder.")
    parser.add_argument("--ignore-suffixes", metavar="LIST", help="Comma-separated suffixes to ignore.")
    parser.add_argument("--ignore-folders", metavar="LIST", help="Comma-separated folder names to ignore.")
    parser.add_argument("--max-file-size", type=_positive_int, metavar="BYTES", help="Skip files larger than this.")
    parser.add_argument("--save-settings", action="store_true", help="Persist the effective import settings.")
    parser.add_argument("--reset-settings", action="store_true", help="Restore the built-in import settings.")
    parser.add_argument("-o", "--output", metavar="FILE", help="Write output to FILE instead of stdout.")
    parser.add_argument("--tokens", action="store_true", help="Print an estimated token count to stderr.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity.")
    parser.add_argument("--log-json", action="store_true", help="Emit log records as JSON lines.")
    return parser


def resolve_settings(args: argparse.Namespace) -> ImportSettings:
    """Combine persisted settings with command-line overrides."""
    settings = config.reset_import_settings() if args.reset_settings else config.load_import_settings()
    changes: dict[str, object] = {}
    if args.no_subfolders:
        changes["include_subfolders"] = False
    if args.ignore_suffixes is not None:
        changes["ignore_suffixes"] = parse_suffix_list(args.ignore_suffixes)
    if args.ignore_folders is not None:
        changes["ignore_folders"] = parse_folder_list(args.ignore_folders)
    if args.max_file_size is not None:
        changes["max_file_size"] = args.max_file_size
    if changes:
        settings = settings.with_changes(**changes)
    if args.save_settings:
        config.save_import_settings(settings)
    return settings


def render_tree(aggregator: Aggregator) -> str:
    """Render the snapshot as an indented checkbox tree with file counts."""
    lines: list[str] = []
    for node, depth in aggregator.model.walk():
        box = _CHECKBOXES[aggregator.model.selection_state(node.id)]
        label = node.name
        if node.is_directory:
            selected, total = aggregator.counts(node.id)
            label = f"{node.name}/ ({selected}/{total})"
        lines.append(f"{'  ' * depth}{box} {label}")
    return "\n".join(lines)


def _emit(text: str, output: str | None) -> None:
    if output is None:
        sys.stdout.write(text)
        if text and not text.endswith("\n"):
            sys.stdout.write("\n")
        sys.stdout.flush()
        return
    Path(output).write_text(text, encoding="utf-8")


def _render(aggregator: Aggregator, args: argparse.Namespace) -> str:
    return render_tree(aggregator) if args.tree else aggregator.output


def _event_source(args: argparse.Namespace, settings: ImportSettings) -> ChangeEventSource | None:
    if not args.watch:
        return None
    if args.poll:
        return PollingEventSource(settings=settings)
    return WatchdogEventSource()


def _watch_loop(aggregator: Aggregator, args: argparse.Namespace) -> None:
    last = _render(aggregator, args)
    try:
        while True:
            if aggregator.process_pending(timeout=0.25) == 0:
                continue
            current = _render(aggregator, args)
            if current == last:
                continue
            last = current
            logger.info("Output updated (%d estimated tokens)", aggregator.token_estimate())
            _emit(current, args.output)
            if args.tokens:
                print(f"{aggregator.token_estimate()} tokens", file=sys.stderr)
    except KeyboardInterrupt:
        return


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and print the assembled prompt."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    setup_base_logger(level=level, json_logs=args.log_json)

    templates = TemplateRegistry(config.load_user_templates())
    if args.list_templates:
        sys.stdout.write("\n".join(templates.names()) + "\n")
        return

    template_name = args.template or config.load_template_name() or "Default"
    if template_name not in templates:
        raise SystemExit(f"Unknown template: {template_name} (choose from {', '.join(templates.names())})")

    settings = resolve_settings(args)
    aggregator = Aggregator(
        settings=settings,
        bookmarks=config.ConfigBookmarkStore(),
        event_source=_event_source(args, settings),
        templates=templates,
        template_name=template_name,
    )

    with aggregator:
        try:
            if args.path is not None:
                path = Path(args.path)
                if not path.exists():
                    raise SystemExit(f"Path not found: {path}")
                result = aggregator.import_root(path)
            else:
                result = aggregator.restore_last_root()
                if result is None:
                    raise SystemExit("No folder given and no previously imported folder to restore.")
        except PromptorError as exc:
            raise SystemExit(str(exc)) from exc
        if not result.ok:
            raise SystemExit(result.error or "Import failed.")

        if args.select and not args.all:
            unknown = aggregator.select_paths(args.select)
            for raw in unknown:
                print(f"warning: not in imported tree: {raw}", file=sys.stderr)
        elif aggregator.snapshot is not None:
            aggregator.set_recursive(aggregator.snapshot.id, True)

        if args.template is not None:
            config.save_template_name(template_name)

        _emit(_render(aggregator, args), args.output)
        if args.tokens:
            print(f"{aggregator.token_estimate()} tokens", file=sys.stderr)
        if args.watch:
            _watch_loop(aggregator, args)


if __name__ == "__main__":
    main()
