from __future__ import annotations

import argparse
import datetime as dt
import sys
from typing import List, Optional, Sequence

import structlog
import uvicorn

from .config import settings

logger = structlog.get_logger(__name__)


def _month(value: str) -> dt.date:
    try:
        return dt.datetime.strptime(value, "%Y-%m").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid month {value!r}, expected YYYY-MM")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="staffmanager", description="Activity reports and customer invoicing.")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="Run the HTTP API (default)")
    run = subparsers.add_parser("invoice-run", help="Generate the invoices of a month")
    run.add_argument("--month", type=_month, default=None, help="Billing month as YYYY-MM (default: current month)")
    run.add_argument(
        "--collaborator",
        type=int,
        action="append",
        dest="collaborators",
        help="Collaborator ID, may be repeated (default: everyone with mission activities)",
    )
    return parser


def invoice_run(month: Optional[dt.date], collaborator_ids: Optional[List[int]]) -> int:
    from .database import db_session
    from .errors import StaffManagerError
    from .main import get_renderer, get_storage
    from .services import collaborators_to_invoice, validate_and_generate_invoice

    renderer = get_renderer()
    storage = get_storage()
    failures = 0
    with db_session() as db:
        targets = collaborator_ids or collaborators_to_invoice(db, month)
        logger.info("invoice_run_start", collaborators=targets)
        for collaborator_id in targets:
            try:
                results = validate_and_generate_invoice(db, collaborator_id, renderer, storage, month)
            except StaffManagerError as exc:
                failures += 1
                print(f"{collaborator_id}\t-\tFAILED\t{exc.kind}: {exc.message}")
                continue
            for result in results:
                if result.ok:
                    print(f"{collaborator_id}\t{result.object_key}\tOK\t{result.total_ttc:.2f}")
                else:
                    failures += 1
                    print(f"{collaborator_id}\t{result.object_key}\tFAILED\t{result.error_kind}: {result.error}")
    return 1 if failures else 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    if args.command == "invoice-run":
        sys.exit(invoice_run(args.month, args.collaborators))
    uvicorn.run("staffmanager.main:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()
