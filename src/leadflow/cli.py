"""
Maintenance command line: data-quality checks and periodic jobs.

    leadflow check-scheduled
    leadflow process-transitions
    leadflow process-reminders
    leadflow create-test-lead --team TEAM_ID [--scheduled-in MINUTES]
    leadflow issue-token --uid UID
    leadflow init-db

Exit code 0 on success, 1 on failure or when the data-quality check finds problems.
"""
import argparse
import asyncio
from datetime import timedelta
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from leadflow.core.config import settings
from leadflow.core.security import create_access_token
from leadflow.database.connection import DatabasePool
from leadflow.database.models.base import utcnow
from leadflow.database.models.enums import DispatchType, UserRole
from leadflow.database.session import get_session, init_db, init_session_factory, reset_session_factory
from leadflow.schemas.leads import LeadCreate
from leadflow.services.authorization import ActorContext
from leadflow.services.lead_service import LeadService
from leadflow.services.notification_service import deliver_notifications
from leadflow.services.reminder_service import ReminderService
from leadflow.services.scheduling import get_zone
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)
console = Console()

CLI_ACTOR_ID = "maintenance-cli"


def _deliver(outbox) -> None:
    if outbox:
        delivered = asyncio.run(deliver_notifications(list(outbox)))
        console.print(f"Delivered {delivered}/{len(outbox)} notification(s)")


def check_scheduled(args) -> int:
    """Report scheduled leads that are missing their appointment time"""
    db = get_session()
    try:
        issues = LeadService(db).data_quality_report(team_id=args.team)
    finally:
        db.close()

    if not issues:
        console.print("[green]✅ All scheduled leads have appointment times[/green]")
        return 0

    table = Table(title=f"{len(issues)} scheduled lead(s) without appointment time")
    for column in ("Lead", "Team", "Status", "Customer"):
        table.add_column(column)
    for lead in issues:
        table.add_row(lead.id, lead.team_id, lead.status, lead.customer_name)
    console.print(table)
    return 1


def process_transitions(args) -> int:
    db = get_session()
    try:
        service = LeadService(db)
        counts = service.process_scheduled_transitions()
        outbox = list(service.outbox)
    finally:
        db.close()
    console.print(
        f"Released {counts['released']}, flagged {counts['flagged']}, auto-assigned {counts['assigned']}"
    )
    _deliver(outbox)
    return 0


def process_reminders(args) -> int:
    db = get_session()
    try:
        service = ReminderService(db)
        sent = service.process_due_reminders()
        outbox = list(service.outbox)
    finally:
        db.close()
    console.print(f"Queued {sent} reminder(s)")
    _deliver(outbox)
    return 0


def create_test_lead(args) -> int:
    """Create a lead as an admin of the given team"""
    actor = ActorContext(uid=CLI_ACTOR_ID, role=UserRole.ADMIN.value, team_id=args.team, display_name="Maintenance")
    payload = {
        "customer_name": args.name,
        "customer_phone": args.phone,
        "address": args.address,
        "team_id": args.team,
    }
    if args.scheduled_in is not None:
        local = (utcnow() + timedelta(minutes=args.scheduled_in)).astimezone(get_zone(settings.dispatch.timezone))
        payload.update(
            dispatch_type=DispatchType.SCHEDULED,
            appointment_date=local.date().isoformat(),
            appointment_time=local.strftime("%H:%M"),
        )

    db = get_session()
    try:
        lead = LeadService(db).create_lead(LeadCreate(**payload), actor)
        console.print(f"[green]✅ Created lead {lead.id}[/green] ({lead.status})")
    finally:
        db.close()
    return 0


def issue_token(args) -> int:
    """Development token for a user id"""
    token = create_access_token(
        args.uid,
        email=args.email,
        name=args.name,
        expires_delta=timedelta(minutes=args.minutes) if args.minutes else None,
    )
    console.print(token, soft_wrap=True)
    return 0


def create_tables(args) -> int:
    init_db()
    console.print("[green]✅ Database tables created[/green]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leadflow", description="LeadFlow maintenance commands.")
    commands = parser.add_subparsers(dest="command", required=True)

    check = commands.add_parser("check-scheduled", help="Find scheduled leads missing an appointment time")
    check.add_argument("--team", default=None)
    check.set_defaults(handler=check_scheduled)

    commands.add_parser(
        "process-transitions", help="Apply the pre-appointment transition rule"
    ).set_defaults(handler=process_transitions)
    commands.add_parser(
        "process-reminders", help="Send due appointment reminders"
    ).set_defaults(handler=process_reminders)

    test_lead = commands.add_parser("create-test-lead", help="Create a lead for testing")
    test_lead.add_argument("--team", required=True)
    test_lead.add_argument("--name", default="Test Customer")
    test_lead.add_argument("--phone", default="555-0100")
    test_lead.add_argument("--address", default="123 Test St")
    test_lead.add_argument("--scheduled-in", type=int, default=None, help="Book an appointment this many minutes ahead")
    test_lead.set_defaults(handler=create_test_lead)

    token = commands.add_parser("issue-token", help="Issue a development bearer token")
    token.add_argument("--uid", required=True)
    token.add_argument("--email", default=None)
    token.add_argument("--name", default=None)
    token.add_argument("--minutes", type=int, default=None)
    token.set_defaults(handler=issue_token)

    commands.add_parser("init-db", help="Create database tables").set_defaults(handler=create_tables)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command != "issue-token":
            DatabasePool.initialize()
            init_session_factory()
        return args.handler(args)
    except Exception as e:
        logger.error(f"[red]❌ {args.command} failed:[/red] {e}")
        return 1
    finally:
        DatabasePool.close()
        reset_session_factory()


if __name__ == "__main__":
    raise SystemExit(main())
