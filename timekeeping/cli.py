from __future__ import annotations
import argparse
from dataclasses import replace
from datetime import date
from typing import Tuple

from .aggregation import monthly_employee_totals, overtime_report, summarize
from .approval import ApprovalStateMachine, persist_bulk
from .core.config import get_settings
from .core.logging import bind_command, configure_logging, get_logger
from .core.monitoring import configure_error_monitoring, report_failure
from .core.observability import configure_metrics
from .models import ActivityKind, ApprovalStatus, StoreError, TimeEntry, parse_time
from .overtime import split_interval
from .schedule import ScheduleConfig
from .storage import EntryStore, SettingsStore, open_stores
from .validation import EntryValidator

logger = get_logger(__name__)

TARGETS = {
    "approve": ApprovalStatus.APPROVED,
    "reject": ApprovalStatus.REJECTED,
    "approve-normal": ApprovalStatus.APPROVED_NORMAL_ONLY,
}


def stores_from_args(args: argparse.Namespace) -> Tuple[EntryStore, SettingsStore]:
    return open_stores(args.database_url or get_settings().database_url)


def parse_date(value: str) -> date:
    return date.fromisoformat(value)


def today_from_args(args: argparse.Namespace) -> date:
    return parse_date(args.today) if args.today else date.today()


def fail(message: str) -> None:
    print(message)
    raise SystemExit(1)


def cmd_add_entry(args: argparse.Namespace) -> None:
    entries, settings_store = stores_from_args(args)
    candidate = TimeEntry(
        employee_id=args.employee,
        client_key=args.client,
        area_name=args.area,
        work_date=parse_date(args.date),
        hours=args.hours or 0.0,
        start_time=parse_time(args.start) if args.start else None,
        end_time=parse_time(args.end) if args.end else None,
        description=args.description,
        activity_kind=ActivityKind.ON_SITE if args.on_site else ActivityKind.REMOTE,
        location=(args.lat, args.lon) if args.lat is not None and args.lon is not None else None,
        signature=args.signature,
    )
    auto_approve_by = None
    if args.coordinator and get_settings().coordinator_auto_approve:
        auto_approve_by = args.employee
    submit(args, entries, settings_store, candidate, auto_approve_by)


def cmd_edit_entry(args: argparse.Namespace) -> None:
    entries, settings_store = stores_from_args(args)
    try:
        current = entries.get(args.id)
    except StoreError as exc:
        fail(str(exc))
    changes = {}
    if args.client:
        changes["client_key"] = args.client
    if args.area:
        changes["area_name"] = args.area
    if args.date:
        changes["work_date"] = parse_date(args.date)
    if args.start:
        changes["start_time"] = parse_time(args.start)
    if args.end:
        changes["end_time"] = parse_time(args.end)
    if args.hours is not None:
        changes.update(hours=args.hours, start_time=None, end_time=None)
    if args.description:
        changes["description"] = args.description
    candidate = ApprovalStateMachine.resubmit(replace(current, **changes))
    submit(args, entries, settings_store, candidate, None)


def submit(args, entries: EntryStore, settings_store: SettingsStore, candidate: TimeEntry, auto_approve_by) -> None:
    validator = EntryValidator(ScheduleConfig.from_settings(settings_store.all()), entries.client_areas())
    result = validator.validate(
        candidate,
        entries.list_for_employee(candidate.employee_id),
        today=today_from_args(args),
        auto_approve_by=auto_approve_by,
    )
    if not result.ok:
        fail(result.failure.message)
    accepted = result.entry
    if accepted.id is None:
        saved = entries.create(accepted)
        print(f"Created time entry {saved.id} for {saved.hours}h on {saved.work_date} ({saved.approval_status.value})")
    else:
        changes = {name: getattr(accepted, name) for name in (
            "client_key", "area_name", "work_date", "hours", "start_time", "end_time",
            "description", "approval_status", "approver_id",
        )}
        saved = entries.update(accepted.id, changes)
        print(f"Updated time entry {saved.id}: {saved.hours}h on {saved.work_date} ({saved.approval_status.value})")


def cmd_decide(args: argparse.Namespace) -> None:
    entries, settings_store = stores_from_args(args)
    machine = ApprovalStateMachine(ScheduleConfig.from_settings(settings_store.all()))
    try:
        entry = entries.get(args.id)
    except StoreError as exc:
        fail(str(exc))
    result = machine.transition(entry, TARGETS[args.command], args.approver)
    if not result.ok:
        fail(result.error.message)
    saved = entries.update(entry.id, {"approval_status": result.entry.approval_status, "approver_id": args.approver})
    print(f"Entry {saved.id} is now {saved.approval_status.value}")


def cmd_bulk(args: argparse.Namespace) -> None:
    entries, settings_store = stores_from_args(args)
    machine = ApprovalStateMachine(ScheduleConfig.from_settings(settings_store.all()))
    target = TARGETS[args.decision]
    scoped = entries.list_for_coordinator(args.approver)
    anchor = parse_date(args.date)
    if args.scope == "day":
        report = machine.bulk_for_day(scoped, anchor, target, args.approver)
    else:
        report = machine.bulk_for_week(scoped, anchor, target, args.approver)
    report = persist_bulk(report, entries)
    print(f"{len(report.succeeded)} updated, {len(report.skipped)} already decided, {len(report.failed)} failed")
    for entry, reason in report.failed:
        print(f"  entry {entry.id}: {reason}")
    if not report.complete:
        raise SystemExit(1)


def cmd_split(args: argparse.Namespace) -> None:
    _, settings_store = stores_from_args(args)
    schedule = ScheduleConfig.from_settings(settings_store.all())
    split = split_interval(parse_time(args.start), parse_time(args.end), parse_date(args.date), schedule)
    print(f"Normal: {split.normal_hours:.2f}h  Overtime: {split.overtime_hours:.2f}h  Total: {split.total_hours:.2f}h")


def scoped_entries(args: argparse.Namespace, entries: EntryStore):
    if args.employee is not None:
        return entries.list_for_employee(args.employee)
    if args.coordinator is not None:
        return entries.list_for_coordinator(args.coordinator)
    fail("Pass --employee or --coordinator")


def cmd_summary(args: argparse.Namespace) -> None:
    entries, settings_store = stores_from_args(args)
    schedule = ScheduleConfig.from_settings(settings_store.all())
    rows = ["Group        Total  Approved  Pending  Rejected  Overtime"]
    for summary in summarize(scoped_entries(args, entries), args.group_by, schedule):
        t = summary.totals
        rows.append(
            f"{str(summary.key):<12} {t.total_hours:>5.2f}  {t.approved_hours:>8.2f}  {t.pending_hours:>7.2f}"
            f"  {t.rejected_hours:>8.2f}  {t.overtime_hours:>8.2f}"
        )
    print("\n".join(rows))


def cmd_overtime(args: argparse.Namespace) -> None:
    entries, settings_store = stores_from_args(args)
    schedule = ScheduleConfig.from_settings(settings_store.all())
    rows = ["Employee  Area          Normal  Overtime  Total"]
    report = overtime_report(
        scoped_entries(args, entries), schedule, parse_date(args.start), parse_date(args.end), area=args.area
    )
    for row in report:
        rows.append(
            f"{row.employee_id:<8}  {row.area_name:<12}  {row.normal_hours:>6.2f}  {row.overtime_hours:>8.2f}  {row.total_hours:>5.2f}"
        )
    print("\n".join(rows))


def cmd_monthly(args: argparse.Namespace) -> None:
    entries, _ = stores_from_args(args)
    target = get_settings().monthly_target_hours
    for row in monthly_employee_totals(scoped_entries(args, entries), args.year, args.month, target):
        state = "complete" if row.complete else "in progress"
        print(f"{row.employee_id} {row.total_hours:.2f}h in {row.entries} entries ({state})")


def cmd_set_setting(args: argparse.Namespace) -> None:
    _, settings_store = stores_from_args(args)
    try:
        ScheduleConfig.from_settings({**settings_store.all(), args.key: args.value})
    except ValueError as exc:
        fail(str(exc))
    settings_store.set(args.key, args.value)
    print(f"Set {args.key} = {args.value}")


def cmd_register_area(args: argparse.Namespace) -> None:
    entries, _ = stores_from_args(args)
    try:
        entries.register_area(args.client, args.area, args.coordinator)
    except StoreError as exc:
        fail(str(exc))
    print(f"Registered area {args.area} for client {args.client}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Timesheet validation and approval CLI")
    parser.add_argument("--database-url", help="Override TIMEKEEPING_DATABASE_URL")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add-entry", help="Record worked time")
    add.add_argument("employee", type=int)
    add.add_argument("client")
    add.add_argument("area")
    add.add_argument("date")
    add.add_argument("--start", help="HH:MM")
    add.add_argument("--end", help="HH:MM")
    add.add_argument("--hours", type=float, help="Hour count when no time range is given")
    add.add_argument("--description")
    add.add_argument("--on-site", action="store_true")
    add.add_argument("--lat", type=float)
    add.add_argument("--lon", type=float)
    add.add_argument("--signature")
    add.add_argument("--coordinator", action="store_true", help="Submitter is a coordinator recording own hours")
    add.add_argument("--today", help="Reference date for the future-date check")
    add.set_defaults(func=cmd_add_entry)

    edit = sub.add_parser("edit-entry", help="Edit and resubmit an entry")
    edit.add_argument("id", type=int)
    edit.add_argument("--client")
    edit.add_argument("--area")
    edit.add_argument("--date")
    edit.add_argument("--start")
    edit.add_argument("--end")
    edit.add_argument("--hours", type=float)
    edit.add_argument("--description")
    edit.add_argument("--today")
    edit.set_defaults(func=cmd_edit_entry)

    for name, help_text in (
        ("approve", "Approve a pending entry"),
        ("reject", "Reject a pending entry"),
        ("approve-normal", "Approve only the normal hours of a pending entry"),
    ):
        decide = sub.add_parser(name, help=help_text)
        decide.add_argument("id", type=int)
        decide.add_argument("approver", type=int)
        decide.set_defaults(func=cmd_decide)

    bulk = sub.add_parser("bulk", help="Decide every pending entry of a day or week")
    bulk.add_argument("scope", choices=["day", "week"])
    bulk.add_argument("date")
    bulk.add_argument("approver", type=int)
    bulk.add_argument("--decision", choices=sorted(TARGETS), default="approve")
    bulk.set_defaults(func=cmd_bulk)

    split = sub.add_parser("split", help="Preview the normal/overtime split of a time range")
    split.add_argument("date")
    split.add_argument("start")
    split.add_argument("end")
    split.set_defaults(func=cmd_split)

    summary = sub.add_parser("summary", help="Hours by status")
    summary.add_argument("--employee", type=int)
    summary.add_argument("--coordinator", type=int)
    summary.add_argument("--group-by", choices=["day", "week", "month", "client", "employee"], default="week")
    summary.set_defaults(func=cmd_summary)

    overtime = sub.add_parser("overtime", help="Overtime per employee in a date range")
    overtime.add_argument("start")
    overtime.add_argument("end")
    overtime.add_argument("--employee", type=int)
    overtime.add_argument("--coordinator", type=int)
    overtime.add_argument("--area")
    overtime.set_defaults(func=cmd_overtime)

    monthly = sub.add_parser("monthly", help="Monthly hours per employee")
    monthly.add_argument("year", type=int)
    monthly.add_argument("month", type=int)
    monthly.add_argument("--employee", type=int)
    monthly.add_argument("--coordinator", type=int)
    monthly.set_defaults(func=cmd_monthly)

    setting = sub.add_parser("set-setting", help="Store a schedule setting")
    setting.add_argument("key")
    setting.add_argument("value")
    setting.set_defaults(func=cmd_set_setting)

    area = sub.add_parser("register-area", help="Attach a work area to a client")
    area.add_argument("client")
    area.add_argument("area")
    area.add_argument("--coordinator", type=int)
    area.set_defaults(func=cmd_register_area)

    return parser


def main(argv: list[str] | None = None) -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    configure_metrics()
    configure_error_monitoring()
    parser = build_parser()
    args = parser.parse_args(argv)
    bind_command(args.command)
    try:
        args.func(args)
    except StoreError as exc:
        logger.error("command_failed", error=str(exc))
        report_failure(exc, args.command)
        fail(str(exc))
    except ValueError as exc:
        fail(str(exc))


if __name__ == "__main__":
    main()
