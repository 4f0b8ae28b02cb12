"""``pilapse`` command dispatcher.

The first argument selects the command; each handler returns the process
exit code.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Callable
import argparse
import logging
import sys

from pilapse.app import Services, build_services
from pilapse.config import AppSettings, apply_config_values, load_settings, read_config_file
from pilapse.lock import InvocationLockedError
from pilapse.logs import configure_logging
from pilapse.schedule import write_config, write_schedule
from pilapse.service import cleanup_directories
from pilapse.storage import MountError

from .diagnostics import CHECKS, run_check


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CAPTURE_FAILED = 2
EXIT_LOCKED = 3

LOG_TAIL_LINES = 10

USAGE = """\
Usage: pilapse COMMAND

Setup Commands:
  setup [OPTIONS]          - Configure project and schedule
  change-interval MINS     - Change capture interval

Operation Commands:
  capture                  - Take a photo now (alias: start)
  end_of_day_sync          - Sync today's photos to the cloud remote
  create_daily_montage     - Create and send daily review
  cleanup_directories      - Clean up empty directories
  count                    - Count images for today
  status                   - Show configuration, schedule and recent log
  reset-mention-cooldown   - Ping the Slack user on the next alert

Test Commands:
  test-camera, test-upload, test-email, test-usb,
  test-usb-write, test-backup-failure, test-all
"""

LOGGER = logging.getLogger("pilapse.cli")


def build_setup_parser() -> argparse.ArgumentParser:
    """Create parser for the non-interactive ``setup`` command."""
    parser = argparse.ArgumentParser(prog="pilapse setup", description="Configure project and schedule.")
    parser.add_argument("--project", dest="PROJECT_NAME", help="Name of this timelapse project.")
    parser.add_argument("--usb-label", dest="USB_BACKUP_LABEL", help="Filesystem label of the USB backup drive.")
    parser.add_argument("--interval", dest="INTERVAL_MINS", help="Capture interval in minutes.")
    parser.add_argument("--start-hour", dest="START_HOUR", help="First capture hour (0-23).")
    parser.add_argument("--stop-hour", dest="STOP_HOUR", help="Hour at which capture stops (0-23).")
    parser.add_argument("--sync-time", dest="SYNC_TIME", help="End-of-day sync time, HH:MM.")
    parser.add_argument("--montage-time", dest="MONTAGE_TIME", help="Daily montage time, HH:MM.")
    parser.add_argument("--cleanup-time", dest="CLEANUP_TIME", help="Directory cleanup time, HH:MM.")
    parser.add_argument("--email", dest="EMAIL_RECIPIENTS", help="Email recipients, space separated.")
    parser.add_argument("--slack-webhook", dest="SLACK_WEBHOOK", help="Slack incoming webhook URL.")
    parser.add_argument("--slack-user", dest="SLACK_USER_ID", help="Slack user ID to mention.")
    return parser


def cmd_setup(settings: AppSettings, args: list[str]) -> int:
    options = build_setup_parser().parse_args(args)
    values = read_config_file(settings.config_path)
    values.update({key: value for key, value in vars(options).items() if value is not None})
    new_settings = apply_config_values(settings, values)
    if not new_settings.project_name:
        print("Error: --project is required.", file=sys.stderr)
        return EXIT_ERROR
    if new_settings.interval_mins is None:
        print("Error: --interval is required.", file=sys.stderr)
        return EXIT_ERROR

    write_config(new_settings)
    print(f"\N{CHECK MARK} Saved config to {new_settings.config_path}")
    write_schedule(new_settings)
    print(f"\N{CHECK MARK} Cron jobs installed in {new_settings.cron_file}")
    print()
    print(f"  Project: {new_settings.project_name}")
    print(f"  USB Label: {new_settings.usb_backup_label or 'Not configured'}")
    print(f"  Capture Interval: Every {new_settings.interval_mins} minutes")
    print(f"  Capture Hours: {new_settings.start_hour}:00 to {new_settings.stop_hour}:00")
    print(f"  Photo Sync: {new_settings.sync_time}")
    print(f"  Daily Montage: {new_settings.montage_time}")
    print(f"  Cleanup: {new_settings.cleanup_time}")
    print(f"  Email: {' '.join(new_settings.email_recipients) or 'Not configured'}")
    print(f"  Slack: {'Configured' if new_settings.slack_webhook else 'Not configured'}")
    return EXIT_OK


def cmd_change_interval(settings: AppSettings, args: list[str]) -> int:
    raw = args[0] if args else ""
    if not raw.isdigit() or int(raw) < 1:
        print("Error: interval must be a positive integer.", file=sys.stderr)
        return EXIT_ERROR
    new_settings = replace(settings, interval_mins=int(raw))
    write_config(new_settings)
    write_schedule(new_settings)
    print(
        f"Cron jobs updated: photo capture runs every {new_settings.interval_mins} minutes "
        f"from {new_settings.start_hour}:00 to {new_settings.stop_hour}:00"
    )
    return EXIT_OK


def cmd_capture(services: Services, args: list[str]) -> int:
    try:
        outcome = services.pipeline.run()
    except InvocationLockedError as exc:
        LOGGER.warning("Capture skipped: %s", exc)
        return EXIT_LOCKED
    return EXIT_OK if outcome.captured else EXIT_CAPTURE_FAILED


def cmd_end_of_day_sync(services: Services, args: list[str]) -> int:
    services.reconciler.reconcile(date.today())
    return EXIT_OK


def cmd_create_daily_montage(services: Services, args: list[str]) -> int:
    result = services.montage.build_daily_montage(date.today())
    return EXIT_OK if result.ok else EXIT_ERROR


def cmd_cleanup_directories(services: Services, args: list[str]) -> int:
    settings = services.settings
    cleanup_directories(settings.backup_dir, settings.photo_dir, settings.project_name, services.volume)
    return EXIT_OK


def cmd_count(services: Services, args: list[str]) -> int:
    try:
        count = services.counter.count(date.today(), require_volume=True)
    except MountError as exc:
        print(f"Error: USB backup volume unavailable: {exc}", file=sys.stderr)
        return EXIT_ERROR
    print(count.summary())
    return EXIT_OK


def _print_file(path: Path, missing: str, redact: Callable[[str], str] = lambda line: line) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        print(missing)
        return
    for line in lines:
        print(redact(line))


def _redact_secret(line: str) -> str:
    if line.startswith("SLACK_WEBHOOK=") and line != "SLACK_WEBHOOK=''":
        return "SLACK_WEBHOOK=<redacted>"
    return line


def _log_tail(path: Path, lines: int = LOG_TAIL_LINES) -> list[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace").splitlines()[-lines:]
    except FileNotFoundError:
        return []


def cmd_status(services: Services, args: list[str]) -> int:
    settings = services.settings
    print("Timelapse System Status")
    print("=======================")
    print()
    print("Configuration:")
    _print_file(settings.config_path, "Not configured. Run: pilapse setup", redact=_redact_secret)
    print()
    print("Cron jobs:")
    _print_file(settings.cron_file, "No cron jobs installed")
    print()
    print("Recent log entries:")
    tail = _log_tail(settings.log_file)
    for line in tail or ["No log file found"]:
        print(line)
    print()
    print("Photo ledger:")
    counts = services.ledger.counts_by_state()
    for state, total in sorted(counts.items()):
        print(f"  {state}: {total}")
    if not counts:
        print("  No photos recorded")
    return EXIT_OK


def cmd_reset_mention_cooldown(settings: AppSettings, args: list[str]) -> int:
    cooldown = settings.mention_cooldown_file
    if cooldown.exists():
        cooldown.unlink()
        print("Mention cooldown reset - next error will ping user")
    else:
        print("No active cooldown")
    return EXIT_OK


SETTINGS_COMMANDS: dict[str, Callable[[AppSettings, list[str]], int]] = {
    "setup": cmd_setup,
    "change-interval": cmd_change_interval,
    "reset-mention-cooldown": cmd_reset_mention_cooldown,
}

SERVICE_COMMANDS: dict[str, Callable[[Services, list[str]], int]] = {
    "capture": cmd_capture,
    "start": cmd_capture,
    "end_of_day_sync": cmd_end_of_day_sync,
    "create_daily_montage": cmd_create_daily_montage,
    "cleanup_directories": cmd_cleanup_directories,
    "count": cmd_count,
    "status": cmd_status,
}

# Commands that need a configured project before they can do anything.
PROJECT_COMMANDS = {"capture", "start", "end_of_day_sync", "create_daily_montage", "cleanup_directories", "count"}


def main(argv: list[str] | None = None) -> int:
    """Dispatch on the first argument and return the process exit code."""
    argv = sys.argv[1:] if argv is None else argv
    command, args = (argv[0], argv[1:]) if argv else ("", [])
    known = set(SETTINGS_COMMANDS) | set(SERVICE_COMMANDS) | set(CHECKS) | {"test-all"}
    if command not in known:
        print(USAGE, file=sys.stderr, end="")
        return EXIT_ERROR

    try:
        settings = load_settings()
    except RuntimeError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    if command in SETTINGS_COMMANDS:
        try:
            return SETTINGS_COMMANDS[command](settings, args)
        except (RuntimeError, OSError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return EXIT_ERROR

    if command in PROJECT_COMMANDS and not settings.project_name:
        print("Not configured. Run: pilapse setup", file=sys.stderr)
        return EXIT_ERROR

    if command != "status":
        configure_logging(settings)
    services = build_services(settings)
    if command in SERVICE_COMMANDS:
        LOGGER.info("Starting %s", command)
        code = SERVICE_COMMANDS[command](services, args)
        LOGGER.info("%s finished with exit code %s", command, code)
        return code
    return run_check(command, services)


if __name__ == "__main__":
    raise SystemExit(main())
