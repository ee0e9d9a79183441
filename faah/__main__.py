from __future__ import annotations

import argparse
import asyncio
import sys

from faah.notifications.models import Category


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="faah",
        description="Play a sound when a terminal asks for approval, finishes a reply, or fails",
    )
    parser.add_argument("--config", help="Path to config file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a command and watch its output")
    run.add_argument("--name", help="Stream name used in logs and notifications")
    run.add_argument(
        "--pipe",
        action="store_true",
        help="Read stdout/stderr through pipes instead of a pseudo-terminal",
    )
    run.add_argument(
        "--summary", action="store_true", help="Print the notifications raised when done"
    )
    run.add_argument("argv", nargs=argparse.REMAINDER, help="Command to run (after --)")

    watch = sub.add_parser("watch", help="Watch text piped on stdin")
    watch.add_argument("--name", default="stdin", help="Stream name")
    watch.add_argument(
        "--summary", action="store_true", help="Print the notifications raised when done"
    )

    diag = sub.add_parser("diagnostics", help="Read a JSON diagnostics payload")
    diag.add_argument("file", nargs="?", default="-", help="File to read ('-' for stdin)")

    sub.add_parser("toggle", help="Turn sounds on or off")

    test = sub.add_parser("test", help="Play a category's sound now")
    test.add_argument("category", choices=[c.value for c in Category])

    sub.add_parser("status", help="Show the effective settings")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    from faah.app import FaahApp

    app = FaahApp(config_path=args.config, verbose=args.verbose)

    if args.command == "run":
        command = list(args.argv)
        if command and command[0] == "--":
            command = command[1:]
        if not command:
            parser.error("run: no command given")
        try:
            code = asyncio.run(app.run_command(command, name=args.name, pipe=args.pipe))
        finally:
            app.close()
        if args.summary:
            _print_summary(app)
        return code

    if args.command == "watch":
        try:
            asyncio.run(app.watch_stdin(name=args.name))
        finally:
            app.close()
        if args.summary:
            _print_summary(app)
        return 0

    if args.command == "diagnostics":
        if args.file == "-":
            text = sys.stdin.read()
        else:
            with open(args.file, encoding="utf-8") as f:
                text = f.read()
        event = app.report_diagnostics(text, source=args.file)
        print("error reported" if event else "no new errors")
        return 0

    if args.command == "toggle":
        enabled = app.toggle()
        print(f"faah sounds {'enabled' if enabled else 'disabled'}")
        return 0

    if args.command == "test":
        app.test_sound(Category(args.category))
        return 0

    if args.command == "status":
        print("\n".join(app.status_lines()))
        return 0

    parser.error(f"unknown command {args.command!r}")
    return 2


def _print_summary(app) -> None:
    print("\n".join(app.summary_lines()), file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
