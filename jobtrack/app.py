import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import AppConfig, ensure_dirs, load_config
from .errors import ParseError, PersistenceError
from .export import ExportFormat, export_to_file
from .logger import get_logger
from .models import JobRecord
from .query import SearchFilters, resolve_date
from .routes import Router
from .server import JobServer
from .store import JobStore

logger = get_logger()

HEADERS = ["ID", "Title", "Description", "Date"]


def format_jobs(jobs: List[JobRecord]) -> str:
    rows = [[str(j.id), j.title, j.description, j.display_date] for j in jobs]
    widths = [max(len(row[i]) for row in [HEADERS] + rows) for i in range(len(HEADERS))]
    lines = [" | ".join(cell.ljust(w) for cell, w in zip(HEADERS, widths))]
    lines.append("-+-".join("-" * w for w in widths))
    for row in rows:
        lines.append(" | ".join(cell.ljust(w) for cell, w in zip(row, widths)))
    return "\n".join(line.rstrip() for line in lines)


def display_jobs(jobs: List[JobRecord]) -> None:
    if not jobs:
        print("No jobs found.")
        return
    print(format_jobs(jobs))


def cmd_add(args: argparse.Namespace, store: JobStore, cfg: AppConfig) -> None:
    title = args.title.strip()
    description = args.description.strip()
    if not title or not description:
        raise SystemExit("Title and description must not be empty.")
    try:
        date = resolve_date(args.date)
    except ParseError as e:
        raise SystemExit(str(e))
    store.add(title, description, date)
    print("Job added successfully")


def cmd_list(args: argparse.Namespace, store: JobStore, cfg: AppConfig) -> None:
    display_jobs(store.list())


def cmd_search(args: argparse.Namespace, store: JobStore, cfg: AppConfig) -> None:
    filters = SearchFilters.from_raw(args.title, args.description, args.date)
    if "date" in filters.dropped:
        print("Invalid date format. Please use the format dd-mm-yyyy. Ignoring the date filter.",
              file=sys.stderr)
    display_jobs(store.search_filters(filters))


def cmd_remove(args: argparse.Namespace, store: JobStore, cfg: AppConfig) -> None:
    store.remove(args.id)
    print("Job removed successfully")


def cmd_serve(args: argparse.Namespace, store: JobStore, cfg: AppConfig) -> None:
    host = args.host or cfg.host
    port = args.port if args.port is not None else cfg.port
    try:
        server = JobServer(Router(store), host=host, port=port, timeout=cfg.socket_timeout)
    except OSError as e:
        raise SystemExit(f"Error while binding to {host}:{port}: {e}")
    print(f"Listening on {server.url}")
    try:
        logger.info("Serving jobs", url=server.url, jobs=store.count())
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down.")
    finally:
        server.server_close()


def cmd_export(args: argparse.Namespace, store: JobStore, cfg: AppConfig) -> None:
    try:
        fmt = ExportFormat.parse(args.format)
    except ParseError as e:
        raise SystemExit(str(e))
    path = Path(args.file)
    try:
        export_to_file(store.list(), fmt, path)
    except OSError as e:
        raise SystemExit(f"Error writing {path}: {e}")
    print(f"Jobs exported successfully to {path}")


def cmd_clear(args: argparse.Namespace, store: JobStore, cfg: AppConfig) -> None:
    store.clear()
    print("Database cleared successfully")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobtrack", description="Track job applications")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    add = subparsers.add_parser("add", help="Add a new job with title, description, and an optional date")
    add.add_argument("title", help="Job title")
    add.add_argument("description", help="Job description")
    add.add_argument("date", nargs="?", help="Date as dd-mm-yyyy (default: today)")
    add.set_defaults(func=cmd_add)

    lst = subparsers.add_parser("list", help="List all jobs")
    lst.set_defaults(func=cmd_list)

    srch = subparsers.add_parser("search", help="Search for jobs, optionally filtering by title, description, and date")
    srch.add_argument("-t", "--title", default="", help="Substring of the title")
    srch.add_argument("-d", "--description", default="", help="Substring of the description")
    srch.add_argument("--date", default="", help="Exact date as dd-mm-yyyy")
    srch.set_defaults(func=cmd_search)

    rm = subparsers.add_parser("remove", help="Remove a job by its id")
    rm.add_argument("id", type=int, help="Job id")
    rm.set_defaults(func=cmd_remove)

    srv = subparsers.add_parser("serve", help="Visualize jobs in a web browser")
    srv.add_argument("--host", help="Interface to bind (default: JOBTRACK_HOST or 127.0.0.1)")
    srv.add_argument("--port", type=int, help="Port to bind (default: JOBTRACK_PORT or 8080)")
    srv.set_defaults(func=cmd_serve)

    exp = subparsers.add_parser("export", help="Export jobs to a file")
    exp.add_argument("--file", default="jobs.json", help="File to export jobs to (default: jobs.json)")
    exp.add_argument("--format", default="json", help="Format of the exported file. Options: json, csv")
    exp.set_defaults(func=cmd_export)

    clr = subparsers.add_parser("clear", help="Clear the database")
    clr.set_defaults(func=cmd_clear)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return 0

    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    cfg = load_config()
    if not cfg.db_path.exists():
        print(f"Creating database at {cfg.db_path}")
    ensure_dirs(cfg)
    logger.configure(level=cfg.log_level, log_dir=cfg.log_dir)

    try:
        store = JobStore(cfg.db_path)
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    try:
        args.func(args, store, cfg)
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
