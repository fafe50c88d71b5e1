"""CLI entry point for Billfold.

Commands:
    billfold login EMAIL [--register]          Sign in and store the session
    billfold logout                            Forget the stored session
    billfold import FILE --account-type TYPE   Import a bank statement CSV
    billfold summary [--month YYYY-MM]         Income / recurring / misc totals
    billfold transactions [--month] [--type] [--sort]
    billfold bills list [--month]              Bills with payment status
    billfold bills add NAME [--due-day N] [--amount X] [--variable] [--autopay]
    billfold bills edit ID NAME [...]          Replace a bill's details
    billfold bills delete ID                   Deactivate a bill
    billfold bills pay ID [--month] [--unpaid] Toggle paid for a month
    billfold mark-recurring TXN_ID [--bill-id ID] [--clear]
    billfold bill-from-transaction TXN_ID [--month]
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path

from src.backend.client import BackendError
from src.backend.session import AuthError

logger = logging.getLogger(__name__)

DEFAULT_SESSION_FILE = ".billfold-session.json"


def _setup_logging() -> None:
    """Configure logging based on FINANCE_LOG_LEVEL env var."""
    level = os.environ.get("FINANCE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_config():
    """Load classification config, or None to use the built-in rules."""
    from src.config import Config

    config_dir = Path(os.environ.get("FINANCE_CONFIG_DIR", "config"))
    if not config_dir.is_dir():
        logger.debug("No config directory at %s; using built-in rules", config_dir)
        return None
    return Config(config_dir=config_dir)


def _get_session_path() -> Path:
    return Path(os.environ.get("FINANCE_SESSION_FILE", DEFAULT_SESSION_FILE))


def _get_client(session=None):
    """Create a BackendClient from FINANCE_API_* env vars."""
    from src.backend.client import DEFAULT_TIMEOUT, BackendClient

    timeout = os.environ.get("FINANCE_API_TIMEOUT")
    return BackendClient(
        base_url=os.environ.get("FINANCE_API_BASE_URL", ""),
        api_key=os.environ.get("FINANCE_API_KEY"),
        session=session,
        timeout=float(timeout) if timeout else DEFAULT_TIMEOUT,
    )


def _get_repo():
    """Repository bound to the stored session.

    Raises:
        AuthError: If nobody is signed in.
    """
    from src.backend.repository import Repository
    from src.backend.session import load_session

    session = load_session(_get_session_path())
    if session is None:
        raise AuthError("Not signed in. Run 'billfold login' first.")
    return Repository(_get_client(session))


def _month_arg(value: str | None) -> str:
    from src.reports.summary import current_month, parse_month

    if value is None:
        return current_month()
    parse_month(value)
    return value


def _money(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


# ── Command handlers ─────────────────────────────────────


def cmd_login(args: argparse.Namespace) -> int:
    """Sign in (or register) and persist the session."""
    from src.backend.repository import Repository
    from src.backend.session import save_session, session_from_auth_response

    password = args.password or getpass.getpass("Password: ")
    repo = Repository(_get_client())
    try:
        if args.register:
            response = repo.register(args.email, password)
        else:
            response = repo.login(args.email, password)
    finally:
        repo.client.close()

    session = session_from_auth_response(response)
    save_session(session, _get_session_path())
    print(f"Signed in as {args.email} (user {session.user_id}).")
    return 0


def cmd_logout(args: argparse.Namespace) -> int:
    from src.backend.session import clear_session

    if clear_session(_get_session_path()):
        print("Signed out.")
    else:
        print("Not signed in.")
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    """Import a bank statement CSV via the ImportPipeline."""
    from src.categorize.pipeline import Categorizer
    from src.importer.pipeline import ImportPipeline

    filepath = args.file.resolve()
    if not filepath.exists():
        print(f"Error: File not found: {filepath}")
        return 1

    repo = _get_repo()
    pipeline = ImportPipeline(
        repo=repo,
        categorizer=Categorizer.from_config(_get_config()),
        progress=lambda stage, message: print(f"  {message}"),
    )
    try:
        result = pipeline.process_file(
            filepath, args.account_type, summary_month=_month_arg(args.month),
        )
    finally:
        repo.client.close()

    if result.status != "success":
        print(f"Error: {result.error_message}")
        return 1

    if result.summary is not None:
        _print_summary(result.summary)
    return 0


def _print_summary(summary) -> None:
    print(f"  Income:     {_money(summary.income):>14}")
    print(f"  Recurring:  {_money(summary.recurring):>14}")
    print(f"  Misc:       {_money(summary.misc):>14}")
    print(f"  Remaining:  {_money(summary.remaining):>14}")


def cmd_summary(args: argparse.Namespace) -> int:
    """Display the month's income and spending totals."""
    from src.reports.summary import month_label, summarize_month

    month = _month_arg(args.month)
    repo = _get_repo()
    try:
        txns = repo.list_transactions(month=month)
    finally:
        repo.client.close()

    print(f"Summary for {month_label(month)}")
    print("=" * 40)
    _print_summary(summarize_month(txns))
    return 0


def cmd_transactions(args: argparse.Namespace) -> int:
    """List the month's transactions, filtered and sorted."""
    from src.reports.summary import filter_transactions, sort_transactions

    month = _month_arg(args.month)
    repo = _get_repo()
    try:
        txns = repo.list_transactions(month=month)
    finally:
        repo.client.close()

    rows = sort_transactions(filter_transactions(txns, args.type), args.sort)
    if not rows:
        print("No transactions found.")
        return 0

    print(f"{len(rows)} transactions")
    print("-" * 80)
    for t in rows:
        bill = f"bill {t.bill_id}" if t.bill_id else ""
        print(
            f"  {t.id!s:>6}  {t.date}  {t.amount:>10.2f}  {t.transaction_type:<9}"
            f"  {(t.merchant or '')[:30]:<30}  {bill}"
        )
    return 0


def cmd_bills(args: argparse.Namespace) -> int:
    """Dispatch to bills subcommands."""
    from src.bills.service import BillService

    sub = getattr(args, "bills_command", None)
    if sub is None:
        print("Usage: billfold bills {list,add,edit,delete,pay}")
        return 1

    repo = _get_repo()
    service = BillService(repo)
    try:
        if sub == "list":
            return _cmd_bills_list(service, args)
        elif sub == "add":
            return _cmd_bills_add(service, args)
        elif sub == "edit":
            return _cmd_bills_edit(service, args)
        elif sub == "delete":
            service.delete_bill(args.id)
            print(f"Deleted bill {args.id}.")
            return 0
        elif sub == "pay":
            month = _month_arg(args.month)
            service.toggle_paid(args.id, month, paid=not args.unpaid)
            state = "unpaid" if args.unpaid else "paid"
            print(f"Marked bill {args.id} {state} for {month}.")
            return 0
        return 1
    finally:
        repo.client.close()


def _cmd_bills_list(service, args: argparse.Namespace) -> int:
    from src.reports.summary import month_label

    month = _month_arg(args.month)
    rows, summary = service.overview(month)

    print(f"Bills for {month_label(month)}")
    print("=" * 72)
    if not rows:
        print("  No bills yet.")
    for r in rows:
        b = r.bill
        due = f"day {b.due_day:>2}" if b.due_day is not None else "no due"
        expected = "variable" if b.is_variable else (
            _money(b.amount_expected) if b.amount_expected is not None else "-"
        )
        mark = "[x]" if r.paid else "[ ]"
        linked = f"{len(r.linked_transactions)} txn" if r.linked_transactions else ""
        autopay = "autopay" if b.autopay else ""
        print(
            f"  {mark} {b.id!s:>5}  {b.name[:28]:<28}  {due:<7}  {expected:>11}"
            f"  {linked:<6} {autopay}"
        )

    print("-" * 72)
    print(f"  Expected:          {_money(summary.total_expected):>12}")
    print(f"  Paid:              {_money(summary.total_paid):>12}")
    print(f"  From transactions: {_money(summary.total_from_transactions):>12}"
          f"  ({summary.linked_transaction_count} linked)")
    print(f"  Remaining:         {_money(summary.remaining):>12}")
    return 0


def _bill_input(args: argparse.Namespace):
    from src.bills.service import validate_bill_input

    return validate_bill_input(
        args.name,
        due_day=args.due_day,
        amount_expected=args.amount,
        is_variable=args.variable,
        autopay=args.autopay,
    )


def _cmd_bills_add(service, args: argparse.Namespace) -> int:
    bill = service.add_bill(_bill_input(args))
    print(f"Added bill '{bill.name}' ({bill.id}).")
    return 0


def _cmd_bills_edit(service, args: argparse.Namespace) -> int:
    bill = service.edit_bill(args.id, _bill_input(args))
    print(f"Updated bill '{bill.name}' ({bill.id}).")
    return 0


def cmd_mark_recurring(args: argparse.Namespace) -> int:
    """Link a transaction to a bill, or clear its recurring flag."""
    repo = _get_repo()
    try:
        if args.clear:
            repo.mark_transaction_recurring(args.txn_id, None, False)
            print(f"Transaction {args.txn_id} marked misc.")
        else:
            repo.mark_transaction_recurring(args.txn_id, args.bill_id, True)
            print(f"Transaction {args.txn_id} marked recurring"
                  + (f" (bill {args.bill_id})." if args.bill_id else "."))
    finally:
        repo.client.close()
    return 0


def cmd_bill_from_transaction(args: argparse.Namespace) -> int:
    """Create a bill from an existing transaction and link them."""
    from src.bills.service import BillService

    month = _month_arg(args.month)
    repo = _get_repo()
    try:
        txn = next(
            (t for t in repo.list_transactions(month=month) if t.id == args.txn_id), None,
        )
        if txn is None:
            print(f"Error: Transaction {args.txn_id} not found in {month}.")
            return 1
        bill = BillService(repo).create_bill_from_transaction(txn)
    finally:
        repo.client.close()

    print(f"Created bill '{bill.name}' ({bill.id}) and linked transaction {txn.id}.")
    return 0


# ── Main entry point ─────────────────────────────────────


_COMMANDS = {
    "login": cmd_login,
    "logout": cmd_logout,
    "import": cmd_import,
    "summary": cmd_summary,
    "transactions": cmd_transactions,
    "bills": cmd_bills,
    "mark-recurring": cmd_mark_recurring,
    "bill-from-transaction": cmd_bill_from_transaction,
}


def _add_bill_fields(p: argparse.ArgumentParser) -> None:
    p.add_argument("name", help="Bill name")
    p.add_argument("--due-day", type=float, help="Day of month (1-31)")
    p.add_argument("--amount", type=float, help="Expected monthly amount")
    p.add_argument("--variable", action="store_true", help="Amount varies month to month")
    p.add_argument("--autopay", action="store_true", help="Paid automatically")


def main(argv: list[str] | None = None):
    _setup_logging()

    from src.importer.pipeline import ACCOUNT_TYPES
    from src.reports.summary import SORT_KEYS, VIEWS

    parser = argparse.ArgumentParser(
        prog="billfold",
        description="Billfold personal bill tracker",
    )
    subparsers = parser.add_subparsers(dest="command")

    # login / logout
    login_p = subparsers.add_parser("login", help="Sign in and store the session")
    login_p.add_argument("email", help="Account email")
    login_p.add_argument("--password", help="Password (prompted if omitted)")
    login_p.add_argument("--register", action="store_true", help="Create the account first")
    subparsers.add_parser("logout", help="Forget the stored session")

    # import
    import_p = subparsers.add_parser("import", help="Import a bank statement CSV")
    import_p.add_argument("file", type=Path, help="CSV file to import")
    import_p.add_argument(
        "--account-type", choices=ACCOUNT_TYPES, default="checking",
        help="Account the statement belongs to",
    )
    import_p.add_argument("--month", help="Month to summarize afterwards (YYYY-MM)")

    # summary
    summary_p = subparsers.add_parser("summary", help="Monthly income and spending totals")
    summary_p.add_argument("--month", help="Month (YYYY-MM), default current")

    # transactions
    txn_p = subparsers.add_parser("transactions", help="List a month's transactions")
    txn_p.add_argument("--month", help="Month (YYYY-MM), default current")
    txn_p.add_argument("--type", choices=VIEWS, default="all", help="Filter by type")
    txn_p.add_argument("--sort", choices=SORT_KEYS, default="date", help="Sort order")

    # bills
    bills_p = subparsers.add_parser("bills", help="Manage recurring bills")
    bills_sub = bills_p.add_subparsers(dest="bills_command")
    list_p = bills_sub.add_parser("list", help="Bills with payment status")
    list_p.add_argument("--month", help="Month (YYYY-MM), default current")
    add_p = bills_sub.add_parser("add", help="Add a bill")
    _add_bill_fields(add_p)
    edit_p = bills_sub.add_parser("edit", help="Replace a bill's details")
    edit_p.add_argument("id", type=int, help="Bill ID")
    _add_bill_fields(edit_p)
    delete_p = bills_sub.add_parser("delete", help="Deactivate a bill")
    delete_p.add_argument("id", type=int, help="Bill ID")
    pay_p = bills_sub.add_parser("pay", help="Mark a bill paid for a month")
    pay_p.add_argument("id", type=int, help="Bill ID")
    pay_p.add_argument("--month", help="Month (YYYY-MM), default current")
    pay_p.add_argument("--unpaid", action="store_true", help="Mark unpaid instead")

    # mark-recurring
    mark_p = subparsers.add_parser("mark-recurring", help="Link a transaction to a bill")
    mark_p.add_argument("txn_id", type=int, help="Transaction ID")
    mark_p.add_argument("--bill-id", type=int, help="Bill to link")
    mark_p.add_argument("--clear", action="store_true", help="Mark as misc instead")

    # bill-from-transaction
    bft_p = subparsers.add_parser(
        "bill-from-transaction", help="Create a bill from a transaction",
    )
    bft_p.add_argument("txn_id", type=int, help="Transaction ID")
    bft_p.add_argument("--month", help="Month the transaction is in (YYYY-MM)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        sys.exit(1)

    try:
        code = handler(args)
    except (BackendError, AuthError, ValueError) as e:
        print(f"Error: {e}")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
