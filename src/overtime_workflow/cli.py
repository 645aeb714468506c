"""Overtime workflow command line interface.

Provides operational tools for:
- Yearly leave accrual
- Revision history of an overtime request
- Balance queries
- Payroll recap lock and cutoff
- TOIL crediting and expiry

Usage:
    overtime-workflow accrue --year 2025
    overtime-workflow history REQUEST_ID
    overtime-workflow balance EMPLOYEE_ID --year 2025
    overtime-workflow recap-lock --actor-id ADMIN_ID
    overtime-workflow recap-complete 2025-01-25
    overtime-workflow toil-credit EMPLOYEE_ID 2025 1 12.5 --actor-id ADMIN_ID
    overtime-workflow toil-expire
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.config import Settings, get_settings
from overtime_workflow.database import (
    create_engine_from_settings,
    create_session_factory,
    session_scope,
)
from overtime_workflow.errors import NotFoundError, WorkflowError
from overtime_workflow.services import (
    AccrualScheduler,
    BalanceStore,
    RecapLockService,
    RevisionLedger,
)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_decimal(s: str) -> Decimal:
    """Parse decimal string."""
    try:
        return Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid decimal value: {s!r}")


class WorkflowCli:
    """Overtime workflow command line interface."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="overtime-workflow",
            description="Overtime workflow operational tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Database URL (default: $DATABASE_URL)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # accrue command
        accrue = subparsers.add_parser(
            "accrue",
            help="Create missing yearly leave balances",
        )
        accrue.add_argument(
            "--year",
            type=int,
            help="Accrual year (default: current year)",
        )

        # history command
        history = subparsers.add_parser(
            "history",
            help="Print the revision ledger of an overtime request",
        )
        history.add_argument("request_id", type=parse_uuid, metavar="REQUEST_ID")

        # balance command
        balance = subparsers.add_parser(
            "balance",
            help="Show overtime and leave balances of an employee",
        )
        balance.add_argument("employee_id", type=parse_uuid, metavar="EMPLOYEE_ID")
        balance.add_argument(
            "--year",
            type=int,
            help="Leave balance year (default: current year)",
        )

        # recap commands
        lock = subparsers.add_parser(
            "recap-lock",
            help="Freeze approvals while payroll recap runs",
        )
        lock.add_argument("--actor-id", type=parse_uuid, required=True)

        subparsers.add_parser(
            "recap-unlock",
            help="Release the approval lock",
        )

        complete = subparsers.add_parser(
            "recap-complete",
            help="Record the recap cutoff date and flag covered requests",
        )
        complete.add_argument("recap_date", type=parse_date, metavar="DATE")

        # TOIL commands
        toil = subparsers.add_parser(
            "toil",
            help="Show unexpired TOIL grants of an employee",
        )
        toil.add_argument("employee_id", type=parse_uuid, metavar="EMPLOYEE_ID")

        credit = subparsers.add_parser(
            "toil-credit",
            help="Convert a month's excess overtime hours into TOIL days",
        )
        credit.add_argument("employee_id", type=parse_uuid, metavar="EMPLOYEE_ID")
        credit.add_argument("year", type=int, metavar="YEAR")
        credit.add_argument("month", type=int, metavar="MONTH")
        credit.add_argument("hours", type=parse_decimal, metavar="HOURS")
        credit.add_argument("--actor-id", type=parse_uuid, required=True)

        expire = subparsers.add_parser(
            "toil-expire",
            help="Expire TOIL grants past their expiry month",
        )
        expire.add_argument(
            "--date",
            type=parse_date,
            help="Reference date (default: today)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[AsyncSession, argparse.Namespace], Awaitable[int]]] = {
            "accrue": self._cmd_accrue,
            "history": self._cmd_history,
            "balance": self._cmd_balance,
            "recap-lock": self._cmd_recap_lock,
            "recap-unlock": self._cmd_recap_unlock,
            "recap-complete": self._cmd_recap_complete,
            "toil": self._cmd_toil,
            "toil-credit": self._cmd_toil_credit,
            "toil-expire": self._cmd_toil_expire,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        settings = self.settings or get_settings()
        if parsed.database_url:
            settings = replace(settings, database_url=parsed.database_url)
        self.settings = settings

        try:
            return asyncio.run(self._dispatch(handler, parsed))
        except WorkflowError as e:
            print(f"ERROR [{e.code}]: {e.message}", file=sys.stderr)
            return 1

    async def _dispatch(
        self,
        handler: Callable[[AsyncSession, argparse.Namespace], Awaitable[int]],
        args: argparse.Namespace,
    ) -> int:
        engine = create_engine_from_settings(self.settings)
        try:
            async with session_scope(create_session_factory(engine)) as session:
                return await handler(session, args)
        finally:
            await engine.dispose()

    async def _cmd_accrue(self, session: AsyncSession, args: argparse.Namespace) -> int:
        """Run yearly leave accrual."""
        report = await AccrualScheduler(session, self.settings).run_yearly_accrual(args.year)
        print(json.dumps(report.to_dict(), indent=2))
        return 1 if report.errors else 0

    async def _cmd_history(self, session: AsyncSession, args: argparse.Namespace) -> int:
        ledger = RevisionLedger(session)
        entries = await ledger.history(args.request_id)
        if not entries:
            print(f"No revisions for overtime request {args.request_id}")
            return 1

        print(f"Revision history for {args.request_id}")
        print("=" * 60)
        for entry in entries:
            print(f"{entry.created_at.isoformat()}  {entry.action:<22} by {entry.revised_by}")
            if entry.comment:
                print(f"    {entry.comment}")
        return 0

    async def _cmd_balance(self, session: AsyncSession, args: argparse.Namespace) -> int:
        """Query overtime and leave balances."""
        store = BalanceStore(session)
        overtime = await store.get_overtime_balance(args.employee_id)
        year = args.year or date.today().year

        output: dict[str, Any] = {
            "employee_id": str(args.employee_id),
            "overtime": {
                "current_balance": str(overtime.current_balance),
                "pending_hours": str(overtime.pending_hours),
                "total_paid": str(overtime.total_paid),
            },
        }
        try:
            leave = await store.get_leave_balance(args.employee_id, year)
        except NotFoundError:
            leave = None
        if leave is not None:
            output["leave"] = {
                "year": year,
                "annual_quota": str(leave.annual_quota),
                "annual_used": str(leave.annual_used),
                "annual_remaining": str(leave.annual_remaining),
            }
        print(json.dumps(output, indent=2))
        return 0

    async def _cmd_recap_lock(self, session: AsyncSession, args: argparse.Namespace) -> int:
        await RecapLockService(session).lock_approvals(args.actor_id)
        print("Approvals locked")
        return 0

    async def _cmd_recap_unlock(self, session: AsyncSession, args: argparse.Namespace) -> int:
        await RecapLockService(session).unlock_approvals()
        print("Approvals unlocked")
        return 0

    async def _cmd_recap_complete(self, session: AsyncSession, args: argparse.Namespace) -> int:
        flagged = await RecapLockService(session).complete_recap(args.recap_date)
        print(f"Recap cutoff set to {args.recap_date.isoformat()}; {flagged} request(s) flagged")
        return 0

    async def _cmd_toil(self, session: AsyncSession, args: argparse.Namespace) -> int:
        summary = await BalanceStore(session).get_toil_balance(args.employee_id)
        print(f"TOIL for {args.employee_id}: {summary.total_days} day(s)")
        for grant in summary.grants:
            print(
                f"  {grant.earned_year}-{grant.earned_month:02d}  {grant.days} day(s), "
                f"expires after {grant.expiry_year}-{grant.expiry_month:02d}"
            )
        return 0

    async def _cmd_toil_credit(self, session: AsyncSession, args: argparse.Namespace) -> int:
        grant = await BalanceStore(session).credit_toil(
            args.employee_id,
            args.year,
            args.month,
            args.hours,
            args.actor_id,
            hours_per_day=self.settings.standard_hours_per_day,
            expiry_months=self.settings.toil_expiry_months,
        )
        print(
            f"Credited {grant.days} TOIL day(s) for {grant.earned_year}-{grant.earned_month:02d}; "
            f"{grant.remaining_hours} hour(s) carried over"
        )
        return 0

    async def _cmd_toil_expire(self, session: AsyncSession, args: argparse.Namespace) -> int:
        expired = await BalanceStore(session).expire_toil(args.date or date.today())
        print(f"{len(expired)} TOIL grant(s) expired")
        return 0


def main() -> int:
    """CLI entry point."""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli = WorkflowCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
