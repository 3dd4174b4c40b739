#!/usr/bin/env python3
"""
HANDHELD CLI

Command-line interface for the handheld console VM.

Usage:
    handheld [options] <command> [arguments]

Commands:
    run         Execute a program and report how it ended
    trace       Execute a program and list every state it entered
    repair      Find the nop/jmp swap that makes a looping program terminate
    check       Parse a program and show its canonical listing
    config      Configuration management

Exit codes:
    0   success
    1   unexpected error
    2   the program could not be loaded
    3   the program did not terminate, or could not be repaired

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from typing import Any, List, Optional

import yaml

from handheld import __version__
from handheld.observability import Layer, get_logger

logger = get_logger("main", Layer.CLI)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_LOAD_ERROR = 2
EXIT_EXECUTION_ERROR = 3


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TABLE = "table"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code and optional payload for stdout."""
    def __init__(self, message: str, exit_code: int = EXIT_FAILURE, data: Any = None):
        super().__init__(message)
        self.exit_code = exit_code
        self.data = data


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    elif fmt == OutputFormat.TABLE:
        return _format_table(data)
    else:
        return _format_text(data)


def _format_table(data: Any) -> str:
    """Format data as ASCII table."""
    if isinstance(data, list) and data and isinstance(data[0], dict):
        headers = list(data[0].keys())
        rows = [[str(row.get(h, ""))[:40] for h in headers] for row in data]
        widths = [max(len(h), max(len(r[i]) for r in rows)) for i, h in enumerate(headers)]

        lines = []
        header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
        lines.append(header_line)
        lines.append("-+-".join("-" * w for w in widths))
        for row in rows:
            lines.append(" | ".join(c.ljust(widths[i]) for i, c in enumerate(row)))
        return "\n".join(lines)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


def _format_text(data: Any) -> str:
    if isinstance(data, list):
        return "\n".join(_format_text(item) for item in data)
    if isinstance(data, dict):
        return " ".join(f"{k}={v}" for k, v in data.items())
    return str(data)


class HandheldCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="handheld",
            description="Handheld console VM: run, trace and repair programs",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"handheld {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=[f.value for f in OutputFormat],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error messages and log events on stderr (unless --log-level is given)",
        )
        self.parser.add_argument(
            "--config", "-c",
            help="Configuration file (default: handheld.yaml if present)",
        )
        self.parser.add_argument(
            "--log-level",
            choices=["debug", "info", "warning", "error", "critical"],
            help="Override observability.log_level",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        """Register all command groups."""
        self._register_program_commands()
        self._register_config_commands()

    def _register_program_commands(self) -> None:
        """Register commands that operate on a program file."""
        run = self.subparsers.add_parser("run", help="Execute a program")
        run.add_argument("program", help="Program source file")
        run.add_argument("--trace", "-t", action="store_true", help="Include the state trace")

        trace = self.subparsers.add_parser("trace", help="List every state a program enters")
        trace.add_argument("program", help="Program source file")

        repair = self.subparsers.add_parser("repair", help="Repair a looping program")
        repair.add_argument("program", help="Program source file")
        repair.add_argument(
            "--workers", "-w",
            type=int,
            help="Threads used to evaluate candidates (default: repair.workers)",
        )
        repair.add_argument(
            "--force",
            action="store_true",
            help="Search even if the unmodified program terminates",
        )

        check = self.subparsers.add_parser("check", help="Parse a program and list it")
        check.add_argument("program", help="Program source file")

    def _register_config_commands(self) -> None:
        """Register config subcommands."""
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., repair.workers)")

        config_sub.add_parser("show", help="Show all configuration")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return EXIT_OK

        fmt = OutputFormat(parsed.format)
        try:
            self._setup(parsed)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return EXIT_OK

        except CLIError as e:
            logger.debug(
                "Command failed",
                operation=parsed.command,
                exit_code=e.exit_code,
                reason=str(e),
            )
            if e.data is not None:
                print(format_output(e.data, fmt))
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except Exception as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return EXIT_FAILURE

    def _setup(self, args: argparse.Namespace) -> None:
        """Load configuration and install logging."""
        from handheld.config import ConfigError, get_config_manager
        from handheld.observability import LogFormat, LogLevel, configure_logging

        mgr = get_config_manager()
        try:
            if args.config:
                mgr.load_from_file(args.config)
            else:
                mgr.load_defaults()
            if args.log_level:
                mgr.set("observability.log_level", args.log_level)
        except ConfigError as e:
            raise CLIError(str(e)) from e

        obs = mgr.config.observability
        try:
            level = LogLevel(obs.log_level.get())
            log_format = LogFormat(obs.log_format.get())
        except ValueError as e:
            raise CLIError(f"Invalid observability configuration: {e}") from e
        if args.quiet and not args.log_level:
            level = LogLevel.CRITICAL
        configure_logging(level, log_format)

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}")

        return handler(args)

    def _load(self, path: str) -> Any:
        from handheld.errors import CodeParseError
        from handheld.program import Program

        try:
            return Program.load(path)
        except CodeParseError as e:
            raise CLIError(str(e), EXIT_LOAD_ERROR, data=e.to_dict()) from e

    # Program handlers
    def _handle_run(self, args: argparse.Namespace) -> Any:
        from handheld.vm import execute

        result = execute(self._load(args.program), record_trace=True if args.trace else None)
        if result.error is not None:
            raise CLIError(
                f"{result.error} (accumulator {result.accumulator})",
                EXIT_EXECUTION_ERROR,
                data=result.to_dict(),
            )
        return result.to_dict()

    def _handle_trace(self, args: argparse.Namespace) -> Any:
        from handheld.vm import execute

        program = self._load(args.program)
        result = execute(program, record_trace=True)
        rows = []
        for state in result.trace:
            instruction = program.get(state.pointer)
            rows.append({
                "pointer": state.pointer,
                "accumulator": state.accumulator,
                "instruction": str(instruction) if instruction is not None else "<end>",
            })
        if result.error is not None:
            raise CLIError(
                f"{result.error} (accumulator {result.accumulator})",
                EXIT_EXECUTION_ERROR,
                data=rows,
            )
        return rows

    def _handle_repair(self, args: argparse.Namespace) -> Any:
        from handheld.errors import RepairError
        from handheld.repair import RepairSearch

        search = RepairSearch(
            self._load(args.program),
            workers=args.workers,
            require_nontermination=False if args.force else None,
        )
        try:
            result = search.search()
        except RepairError as e:
            raise CLIError(str(e), EXIT_EXECUTION_ERROR, data=e.to_dict()) from e
        return result.to_dict()

    def _handle_check(self, args: argparse.Namespace) -> Any:
        program = self._load(args.program)
        return {
            "instructions": len(program),
            "listing": [f"{address:>5}  {text}" for address, text in program.listing()],
        }

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        from handheld.config import ConfigError, get_config_manager
        mgr = get_config_manager()
        try:
            return {"path": args.path, "value": mgr.get(args.path)}
        except ConfigError as e:
            raise CLIError(str(e)) from e

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        from handheld.config import get_config_manager
        mgr = get_config_manager()
        return mgr.config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        from handheld.config import get_config_manager
        mgr = get_config_manager()
        errors = mgr.validate()
        return {"valid": len(errors) == 0, "errors": errors}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        from handheld.config import get_config_manager
        mgr = get_config_manager()
        return mgr.export_schema()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    cli = HandheldCLI()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())
