import argparse
import logging
import os
import time
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .analysis import BudgetAnalyst
from .api import import_workbook, open_store
from .config import Config
from .config import load_config as load_runtime_config
from .errors import NoRecognizedColumns, TabularReadError
from .export import make_summary_text, write_export
from .metrics import metrics_frame
from .sync import SyncStatus, SyncStore

logger = logging.getLogger(__name__)

FAILED_STATUSES = {SyncStatus.SAVE_FAILED}


class _Stages:
    def __init__(self) -> None:
        self.counter = 0

    def __call__(self, message: str, *args: object) -> None:
        self.counter += 1
        logger.info("[costtrack:%02d] " + message, self.counter, *args)


def _cmd_import(cfg: Config, args: argparse.Namespace, store: SyncStore, stage: _Stages) -> int:
    path = Path(args.path).expanduser().resolve()
    stage("Reading %s", path)
    try:
        projects = import_workbook(store, path, args.sheet, wait_seconds=args.wait)
    except (NoRecognizedColumns, TabularReadError) as exc:
        logger.error("%s", exc)
        logger.info("Existing data left unchanged (%d project(s))", len(store.projects))
        return 1
    stage("Imported %d project(s); status: %s", len(projects), store.status_label)
    if store.is_syncing:
        logger.warning("Remote save still in progress after %.0fs", args.wait)
    return 1 if store.status in FAILED_STATUSES else 0


def _cmd_show(cfg: Config, args: argparse.Namespace, store: SyncStore, stage: _Stages) -> int:
    logger.info(make_summary_text(store.summary))
    projects = store.search(args.search or "")
    if not projects:
        logger.info("尚無工程數據，請匯入 Excel 檔案" if not store.projects else "No matching projects")
        return 0
    frame = metrics_frame(projects)
    logger.info(frame.round(1).to_string())
    return 0


def _cmd_export(cfg: Config, args: argparse.Namespace, store: SyncStore, stage: _Stages) -> int:
    path = write_export(store.projects, cfg.output_dir)
    if path is None:
        logger.info("Nothing to export")
        return 0
    stage("Wrote %s", path)
    return 0


def _cmd_analyze(cfg: Config, args: argparse.Namespace, store: SyncStore, stage: _Stages) -> int:
    stage("Analysing %d project(s) with %s", len(store.projects), cfg.ai.model)
    result = BudgetAnalyst(cfg.ai).analyze(store.projects)
    if result.truncated_context:
        logger.info("Project data was truncated to %d characters for the analysis prompt", cfg.ai.max_context_chars)
    logger.info(result.text)
    return 1 if result.status == "failed" else 0


def _cmd_watch(cfg: Config, args: argparse.Namespace, store: SyncStore, stage: _Stages) -> int:
    if not store.remote_active:
        logger.info("Remote store not active (%s); nothing to watch", store.status_label)
        return 0

    def _report(current: SyncStore) -> None:
        logger.info("%s | %d project(s)", current.status_label, len(current.projects))

    store.add_listener(_report)
    deadline = time.monotonic() + args.seconds if args.seconds else None
    try:
        while deadline is None or time.monotonic() < deadline:
            store.process_events(timeout=0.5)
    except KeyboardInterrupt:  # pragma: no cover - interactive
        logger.info("Stopped watching")
    return 0


COMMANDS = {
    "import": _cmd_import,
    "show": _cmd_show,
    "export": _cmd_export,
    "analyze": _cmd_analyze,
    "watch": _cmd_watch,
}


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track construction project budgets across local and shared storage")
    parser.add_argument("--cache-dir", help="Directory holding the local project cache")
    parser.add_argument("--app-id", help="Application identifier used in the shared document path")
    parser.add_argument("--remote-config", help="Inline JSON or path to a JSON/YAML remote store config")
    parser.add_argument("--output-dir", help="Directory for exported workbooks")
    parser.add_argument("--disable-ai", action="store_true", help="Disable OpenAI usage for portfolio analysis")
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")
    sub = parser.add_subparsers(dest="command", required=True)

    import_parser = sub.add_parser("import", help="Import projects from a spreadsheet")
    import_parser.add_argument("path", help="Path to .xlsx, .xls or .csv file")
    import_parser.add_argument("--sheet", default=0, help="Sheet name or index (default: first sheet)")
    import_parser.add_argument("--wait", type=float, default=30.0, help="Seconds to wait for the remote save")

    show_parser = sub.add_parser("show", help="Print the portfolio summary and project table")
    show_parser.add_argument("--search", help="Only list projects whose name contains this text")

    sub.add_parser("export", help="Write the budget monitoring workbook")
    sub.add_parser("analyze", help="Request an AI analysis of the portfolio")

    watch_parser = sub.add_parser("watch", help="Follow remote updates")
    watch_parser.add_argument("--seconds", type=float, default=0.0, help="Stop after this many seconds (0 = until interrupted)")

    args = parser.parse_args(argv)
    if isinstance(getattr(args, "sheet", None), str) and args.sheet.isdigit():
        args.sheet = int(args.sheet)
    return args


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    runtime_cfg = load_runtime_config(os.environ, args)
    log_level = logging.DEBUG if runtime_cfg.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s")

    stage = _Stages()
    store = open_store(runtime_cfg)
    stage("Sync status: %s (%d project(s))", store.status_label, len(store.projects))
    try:
        return COMMANDS[args.command](runtime_cfg, args, store, stage)
    except Exception:  # pragma: no cover
        logger.exception("Fatal error during %s", args.command)
        return 1
    finally:
        store.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
