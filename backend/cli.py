#!/usr/bin/env python3
"""
Dose journal command line.

Usage:
    python cli.py log caffeine oral 100 mg
    python cli.py log alcohol oral 500 ml --perc 5
    python cli.py get --num 5 --desc
    python cli.py times
    python cli.py remove --amount 2

Settings come from the environment or .env (see config.py).
"""

import argparse
import logging
import sys

from config import configure_logging, settings
from db.store import Store, build_store
from services.cost_service import get_total_costs
from services.deadline_context import operation_timeout
from services.errors import DoseJournalError
from services.fetch_service import fetch_from_source
from services.info_service import get_info, list_drug_names, remove_drug_info
from services.log_service import change_log, get_logs, get_logs_count, get_users, remove_logs
from services.names_service import seed_all
from services.progression_service import get_times
from services.user_settings_service import forget_dosing, recall_dosing, remember_dosing
from services.write_coordinator import append
from utils.formatting import format_costs, format_info, format_logs, format_times

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Keep a journal of substance doses")
    parser.add_argument("--user", default=None, help="Username, defaults to DEFAULT_USERNAME")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    log = sub.add_parser("log", help="Log a dose")
    log.add_argument("drug")
    log.add_argument("route")
    log.add_argument("dose", type=float)
    log.add_argument("units")
    log.add_argument("--perc", type=float, default=0, help="Pure substance percentage, triggers conversion")
    log.add_argument("--cost", type=float, default=0)
    log.add_argument("--currency", default="")
    log.add_argument("--end-time", type=int, default=0, help="Unix time the dosing finished")

    get = sub.add_parser("get", help="Show logs")
    get.add_argument("--num", type=int, default=0)
    get.add_argument("--id", dest="log_id", type=int, default=0)
    get.add_argument("--desc", action="store_true")
    get.add_argument("--search", default="")
    get.add_argument("--column", dest="exact_column", default="")

    sub.add_parser("count", help="Count logs")

    remove = sub.add_parser("remove", help="Remove logs, all of them unless narrowed")
    remove.add_argument("--amount", type=int, default=0)
    remove.add_argument("--reverse", action="store_true", help="Newest first")
    remove.add_argument("--id", dest="log_id", type=int, default=0)
    remove.add_argument("--search", default="")
    remove.add_argument("--column", dest="exact_column", default="")

    change = sub.add_parser("change", help="Change one column of a log")
    change.add_argument("column")
    change.add_argument("value")
    change.add_argument("--id", dest="log_id", type=int, default=0)

    times = sub.add_parser("times", help="Show progression of a dose")
    times.add_argument("--id", dest="log_id", type=int, default=0)

    sub.add_parser("costs", help="Total costs per substance")

    info = sub.add_parser("info", help="Show info for a drug, or list drugs")
    info.add_argument("drug", nargs="?", default="")

    fetch = sub.add_parser("fetch", help="Fetch drug info from the source")
    fetch.add_argument("drug")

    remove_drug = sub.add_parser("remove-drug", help="Remove a drug from the info table")
    remove_drug.add_argument("drug")

    remember = sub.add_parser("remember", help="Remember a log for reuse")
    remember.add_argument("--id", dest="log_id", type=int, default=0)

    sub.add_parser("recall", help="Show the remembered log")
    sub.add_parser("forget", help="Forget the remembered log")
    sub.add_parser("users", help="List users with logs")

    init_names = sub.add_parser("init-names", help="Seed alt-names tables from the config files")
    init_names.add_argument("--overwrite", action="store_true", help="Drop and re-read the tables")

    clean = sub.add_parser("clean", help="Drop tables")
    clean.add_argument("target", choices=["all", "info", "names"])

    sub.add_parser("db-size", help="Database size in bytes")
    return parser


def run(store: Store, args: argparse.Namespace) -> str:
    user = args.user or store.settings.DEFAULT_USERNAME
    tz_name = store.settings.TIMEZONE
    command = args.command

    if command == "log":
        row = append(
            store, user, args.drug, args.route, args.dose, args.units,
            perc=args.perc, cost=args.cost, currency=args.currency, end_time=args.end_time,
        )
        return format_logs([row], tz_name)
    if command == "get":
        logs = get_logs(
            store, user, num=args.num, log_id=args.log_id, desc=args.desc,
            search=args.search, exact_column=args.exact_column,
        )
        return format_logs(logs, tz_name)
    if command == "count":
        return str(get_logs_count(store, user))
    if command == "remove":
        removed = remove_logs(
            store, user, amount=args.amount, reverse=args.reverse, log_id=args.log_id,
            search=args.search, exact_column=args.exact_column,
        )
        return f"Removed {removed} log(s)"
    if command == "change":
        return format_logs([change_log(store, args.column, args.log_id, user, args.value)], tz_name)
    if command == "times":
        return format_times(get_times(store, user, log_id=args.log_id), tz_name)
    if command == "costs":
        return format_costs(get_total_costs(store, user))
    if command == "info":
        if not args.drug:
            return "\n".join(list_drug_names(store))
        return format_info(get_info(store, args.drug), tz_name)
    if command == "fetch":
        rows = fetch_from_source(store, args.drug)
        return format_info(rows, tz_name) if rows else "Nothing fetched"
    if command == "remove-drug":
        return f"Removed {remove_drug_info(store, args.drug)!r} from the info table"
    if command == "remember":
        return f"Remembering log {remember_dosing(store, user, log_id=args.log_id)}"
    if command == "recall":
        log = recall_dosing(store, user)
        return format_logs([log], tz_name) if log else "Nothing remembered"
    if command == "forget":
        forget_dosing(store, user)
        return "Forgot the remembered log"
    if command == "users":
        return "\n".join(get_users(store))
    if command == "init-names":
        seed_all(store, overwrite=args.overwrite)
        return "Alt-names tables ready"
    if command == "clean":
        if args.target == "info":
            store.clean_info_table()
            return "Info table removed"
        if args.target == "names":
            return "Removed: " + ", ".join(store.clean_names_tables())
        return "Removed: " + ", ".join(store.clean_db())
    if command == "db-size":
        return str(store.get_db_size())
    raise ValueError(f"Unknown command: {command}")


def main(argv: list[str] | None = None, store: Store | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose or None)
    try:
        settings.validate_configuration()
        store = store or build_store()
        with operation_timeout(store.settings.TIMEOUT):
            output = run(store, args)
    except DoseJournalError as exc:
        logger.error("%s", exc)
        return 1
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 1
    if output:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
