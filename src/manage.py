"""Registration draft management CLI.

Inspects saved registration snapshots (the JSON written by
``RegistrationContext.to_snapshot``) without a running front end.

Usage:
    python src/manage.py summary draft.json            # Print the order summary
    python src/manage.py summary draft.json --json     # ... as JSON
    python src/manage.py validate draft.json           # Run the current wizard step's validator
"""

import argparse
import json
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

console = Console()


def _load(path):
    from registration.context import RegistrationContext

    file = Path(path)
    if not file.exists():
        console.print(f"[red]Error:[/red] File not found: {file}", style="bold")
        sys.exit(1)
    return RegistrationContext.from_snapshot(json.loads(file.read_text(encoding="utf-8")))


def show_summary(path, as_json=False):
    ctx = _load(path)
    summary = ctx.summary()

    if as_json:
        console.print_json(
            json.dumps(
                {
                    "draft_id": ctx.draft_id,
                    "total_attendees": summary.total_attendees,
                    "total_tickets": summary.total_tickets,
                    "total_packages": summary.total_packages,
                    "subtotal": summary.subtotal,
                    "totals_by_currency": summary.totals_by_currency,
                    "total_amount": summary.total_amount,
                    "currency": summary.currency,
                    "status": summary.status.value,
                    "payment_status": summary.payment_status.value,
                }
            )
        )
        return summary

    table = Table(title=f"Draft {ctx.draft_id}")
    table.add_column("Attendee")
    table.add_column("Name")
    table.add_column("Tickets", justify="right")
    table.add_column("Packages", justify="right")
    table.add_column("Subtotal", justify="right")
    for row in summary.attendee_summaries:
        table.add_row(row.label, row.display_name, str(row.ticket_count), str(row.package_count), f"{row.subtotal:.2f}")
    console.print(table)
    console.print(f"Total: {summary.total_amount:.2f} {summary.currency or ''}".rstrip(), style="bold")
    console.print(f"Status: {summary.status.value} / {summary.payment_status.value}", style="dim")
    return summary


def validate_draft(path):
    ctx = _load(path)
    errors = ctx.navigator.validate(ctx.registration)
    step = ctx.current_step.name.replace("_", " ").lower()

    if not errors:
        console.print(f"[green]Step '{step}' is complete[/green]")
        return True

    console.print(f"[yellow]Step '{step}' has {len(errors)} problem(s):[/yellow]")
    for messages in errors.values():
        for message in messages:
            console.print(f"  {message}")
    return False


def main():
    from registration.domain import registration
    from registration.utils.logging import configure_logging

    parser = argparse.ArgumentParser(description="Registration draft management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    summary_parser = subparsers.add_parser("summary", help="Print the order summary of a saved draft")
    summary_parser.add_argument("snapshot", help="Path to a draft snapshot JSON file")
    summary_parser.add_argument("--json", action="store_true", help="Print machine readable output")

    validate_parser = subparsers.add_parser("validate", help="Validate the current step of a saved draft")
    validate_parser.add_argument("snapshot", help="Path to a draft snapshot JSON file")

    args = parser.parse_args()

    configure_logging()
    registration.init()

    with registration.domain_context():
        if args.command == "summary":
            show_summary(args.snapshot, as_json=args.json)
        elif args.command == "validate":
            if not validate_draft(args.snapshot):
                sys.exit(1)
        else:
            parser.print_help()
            sys.exit(1)


if __name__ == "__main__":
    main()
