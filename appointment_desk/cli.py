"""
Command line entry point for the periodic appointment jobs.

Usage:
    appointment-desk generate-slots                    # today only
    appointment-desk generate-slots --date 2025-06-10
    appointment-desk generate-slots --recurring --days 30
    appointment-desk send-reminders --hours 24
    appointment-desk send-reminders --all
"""
import argparse
import logging
import sys

from appointment_desk.core.config import settings
from appointment_desk.core.database import SessionLocal
from appointment_desk.core.exceptions import AppointmentError
from appointment_desk.services.notification_service import NotificationService
from appointment_desk.services.reminder_scheduler import ReminderScheduler
from appointment_desk.services.reminder_settings import load_reminder_config
from appointment_desk.services.slot_generator import SlotGenerator, parse_date

logger = logging.getLogger("appointment_desk.cli")


def generate_slots(db, args) -> int:
    generator = SlotGenerator(db)
    if args.date:
        day = parse_date(args.date)
        generated = generator.generate_for_date(day)
        logger.info("%d slot(s) generated for %s", generated, day.strftime("%d/%m/%Y"))
    elif args.recurring:
        generated = generator.generate_recurring(args.days)
        logger.info("%d recurring slot(s) generated for the next %d days", generated, args.days)
    else:
        today = generator.clock().date()
        generated = generator.generate_for_date(today)
        logger.info("%d slot(s) generated for today (%s)", generated, today.strftime("%d/%m/%Y"))
    return 0


def send_reminders(db, args) -> int:
    scheduler = ReminderScheduler(db, NotificationService(), load_reminder_config(db))
    if args.all:
        result = scheduler.run_all()
        for run in result.runs:
            logger.info("%dh: %d sent, %d failed, %d skipped", run.lead_hours, run.sent, run.failed, run.skipped)
        return 0 if result.ok else 1

    result = scheduler.run(args.hours)
    if result.failed:
        logger.warning("%d reminder(s) failed", result.failed)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="appointment-desk", description="Appointment slot and reminder jobs")
    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate-slots", help="Generate appointment slots")
    generate.add_argument("--date", help="Specific date (YYYY-MM-DD)")
    generate.add_argument("--recurring", action="store_true", help="Generate slots for the coming days")
    generate.add_argument("--days", type=int, default=settings.GENERATE_DAYS_AHEAD, help="Days to generate ahead")
    generate.set_defaults(handler=generate_slots)

    remind = commands.add_parser("send-reminders", help="Send reminders for upcoming appointments")
    remind.add_argument("--hours", type=int, default=None, help="Lead time in hours before the appointment")
    remind.add_argument("--all", action="store_true", help="Run every configured lead time")
    remind.set_defaults(handler=send_reminders)
    return parser


def main(argv=None) -> int:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    args = build_parser().parse_args(argv)

    db = SessionLocal()
    try:
        return args.handler(db, args)
    except AppointmentError as e:
        logger.error("%s: %s", e.code, e.message)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
