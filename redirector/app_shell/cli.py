import argparse
import csv
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from redirector.adapters.sqlite.migrator import SQLiteMigrator
from redirector.adapters.sqlite_db import SQLiteRedirectRuleStore
from redirector.api.deps import Settings
from redirector.components.redirects import RedirectService, create_redirect_service
from redirector.rules.loader import RedirectRulesAdapter, load_rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")

CLI_STATUS_CODE = 301
PROGRESS_EVERY = 100
NOTICE_FIELDS = ("redirect_from", "redirect_to", "message")


def get_service(args: argparse.Namespace) -> RedirectService:
    rules_path = Path(args.rules)
    if not rules_path.exists():
        logger.error(f"Rules file {rules_path} not found.")
        sys.exit(1)

    rules = load_rules(rules_path)

    db_path = Path(args.db)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    SQLiteMigrator(str(db_path)).run_migrations()

    store = SQLiteRedirectRuleStore(str(db_path))
    return create_redirect_service(store, RedirectRulesAdapter(rules.redirects))


def handle_insert(service: RedirectService, args: argparse.Namespace) -> None:
    rule, errors = service.save(args.from_url, args.to_url, status_code=args.status)
    if errors or rule is None:
        reason = "; ".join(e.message for e in errors)
        logger.error(f"Couldn't insert {args.from_url} -> {args.to_url}: {reason}")
        sys.exit(1)

    print(f"Inserted {rule.from_canonical} -> {rule.to_target} ({rule.status_code})")


def import_rows(
    service: RedirectService,
    rows: Sequence[Sequence[str]],
    verbose: bool = False,
    out: TextIO | None = None,
) -> list[dict[str, str]]:
    """
    Import ``from,to[,status]`` rows.

    Returns notices: one per failed row, plus one per imported row when
    verbose.
    """
    out = out or sys.stdout
    notices: list[dict[str, str]] = []

    for row_number, row in enumerate(rows, start=1):
        if not row or not any(cell.strip() for cell in row):
            continue

        redirect_from = row[0].strip()
        redirect_to = row[1].strip() if len(row) > 1 else ""
        status_code = CLI_STATUS_CODE
        if len(row) > 2 and row[2].strip().isdigit():
            status_code = int(row[2].strip())

        if verbose:
            print(f"Adding (CSV) redirect for {redirect_from} to {redirect_to}", file=out)
            print(f"-- at {row_number}", file=out)
        elif row_number % PROGRESS_EVERY == 0:
            print(f"Processing row {row_number}", file=out)

        _, errors = service.save(redirect_from, redirect_to, status_code=status_code)
        if errors:
            message = "; ".join(e.message for e in errors)
            notices.append(
                {
                    "redirect_from": redirect_from,
                    "redirect_to": redirect_to,
                    "message": f"Could not insert redirect: {message}",
                }
            )
        elif verbose:
            notices.append(
                {
                    "redirect_from": redirect_from,
                    "redirect_to": redirect_to,
                    "message": "Successfully imported",
                }
            )

    return notices


def format_notices(
    notices: list[dict[str, str]], fmt: str, out: TextIO | None = None
) -> None:
    out = out or sys.stdout
    if fmt == "json":
        out.write(json.dumps(notices, indent=2) + "\n")
    elif fmt == "table":
        widths = {f: max([len(f), *(len(n[f]) for n in notices)]) for f in NOTICE_FIELDS}
        out.write("  ".join(f.ljust(widths[f]) for f in NOTICE_FIELDS).rstrip() + "\n")
        for notice in notices:
            out.write("  ".join(notice[f].ljust(widths[f]) for f in NOTICE_FIELDS).rstrip() + "\n")
    else:
        writer = csv.DictWriter(out, fieldnames=NOTICE_FIELDS, lineterminator="\n")
        writer.writeheader()
        writer.writerows(notices)


def handle_import(service: RedirectService, args: argparse.Namespace) -> None:
    csv_path = Path(args.csv.strip())
    if not csv_path.is_file():
        logger.error("Invalid 'csv' file")
        sys.exit(1)

    if not args.verbose:
        print("Processing...")

    with open(csv_path, newline="", encoding="utf-8") as f:
        notices = import_rows(service, list(csv.reader(f)), verbose=args.verbose)

    if notices:
        format_notices(notices, args.format)
    else:
        print("All of your redirects have been imported. Nice work!")


def handle_find_domains(service: RedirectService, args: argparse.Namespace) -> None:
    domains = service.find_domains()
    print(f"Found {len(domains):,} unique outbound domains")
    for domain in domains:
        print(domain)


def handle_list(service: RedirectService, args: argparse.Namespace) -> None:
    for rule in service.list_all():
        line = f"{rule.status_code}\t{rule.from_canonical}\t{rule.to_target}"
        if not rule.active:
            line += f"\t[inactive: {rule.validation_error}]"
        print(line)


def build_parser() -> argparse.ArgumentParser:
    settings = Settings()

    parser = argparse.ArgumentParser(description="Redirector CLI")
    parser.add_argument("--db", default=settings.db_path, help="Path to the SQLite database")
    parser.add_argument("--rules", default=str(settings.rules_path), help="Path to rules.yaml")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # insert-redirect
    insert_parser = subparsers.add_parser("insert-redirect", help="Insert a single redirect")
    insert_parser.add_argument("from_url", help="URL to redirect from, relative to the site root")
    insert_parser.add_argument("to_url", help="Site-relative path or absolute URL")
    insert_parser.add_argument(
        "--status", type=int, default=CLI_STATUS_CODE, help="HTTP status code"
    )

    # import-from-csv
    import_parser = subparsers.add_parser(
        "import-from-csv", help="Bulk import redirects from a from,to[,status] CSV file"
    )
    import_parser.add_argument("--csv", required=True, help="Path to the CSV file")
    import_parser.add_argument(
        "--format", choices=("table", "json", "csv"), default="csv", help="Notice output format"
    )
    import_parser.add_argument("--verbose", action="store_true", help="Report every row")

    # find-domains
    subparsers.add_parser("find-domains", help="List external hosts that rules redirect to")

    # list
    subparsers.add_parser("list", help="List all redirect rules")

    return parser


HANDLERS = {
    "insert-redirect": handle_insert,
    "import-from-csv": handle_import,
    "find-domains": handle_find_domains,
    "list": handle_list,
}


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    service = get_service(args)
    HANDLERS[args.command](service, args)


if __name__ == "__main__":
    main()
