"""Employee engine command line interface.

Operational tools for:
- Creating the database schema
- Inspecting an employee
- Reading an employee's audit trail

Usage:
    python -m employee_engine init-db
    python -m employee_engine show <employee_id>
    python -m employee_engine audit <employee_id> --limit 20
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Callable
from uuid import UUID

from employee_engine.config import get_settings
from employee_engine.database import create_engine, create_session_factory, create_tables
from employee_engine.errors import EmployeeEngineError
from employee_engine.services.employee_service import EmployeeService


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class EmployeeCli:
    """Employee engine command line interface."""

    def __init__(self, database_url: str | None = None) -> None:
        self.database_url = database_url
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m employee_engine",
            description="Employee records engine tools",
        )
        parser.add_argument(
            "--database-url",
            help="Database URL (defaults to DATABASE_URL)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create missing tables")

        show = subparsers.add_parser("show", help="Print an employee as JSON")
        show.add_argument("employee_id", type=parse_uuid, help="Employee ID")

        audit = subparsers.add_parser("audit", help="Print an employee's audit trail")
        audit.add_argument("employee_id", type=parse_uuid, help="Employee ID")
        audit.add_argument(
            "--limit",
            type=int,
            default=20,
            help="Maximum number of entries, newest first (default: 20)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], Any]] = {
            "init-db": self._cmd_init_db,
            "show": self._cmd_show,
            "audit": self._cmd_audit,
        }
        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return asyncio.run(handler(parsed))
        except EmployeeEngineError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 2

    def _engine(self, args: argparse.Namespace):  # noqa: ANN202
        return create_engine(args.database_url or self.database_url)

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create all tables."""
        engine = self._engine(args)
        try:
            await create_tables(engine)
        finally:
            await engine.dispose()
        print("Tables created.")
        return 0

    async def _cmd_show(self, args: argparse.Namespace) -> int:
        """Print the hydrated employee view."""
        engine = self._engine(args)
        try:
            service = EmployeeService(create_session_factory(engine))
            view = await service.get_employee(args.employee_id)
        finally:
            await engine.dispose()
        print(view.model_dump_json(indent=2))
        return 0

    async def _cmd_audit(self, args: argparse.Namespace) -> int:
        """Print audit entries, newest first."""
        if args.limit < 1:
            print("--limit must be at least 1", file=sys.stderr)
            return 1

        engine = self._engine(args)
        try:
            service = EmployeeService(create_session_factory(engine))
            page = await service.audit_page(args.employee_id, args.limit)
        finally:
            await engine.dispose()

        for entry in page.entries:
            print(json.dumps(entry.model_dump(mode="json")))
        if page.next_before_seq is not None:
            print(f"... more entries before seq {page.next_before_seq}", file=sys.stderr)
        return 0


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli = EmployeeCli()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
