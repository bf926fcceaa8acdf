# client.py
"""Console chat client entry script.

Usage:
    python client.py --user=user-001 --group=studio-a-01 [--origin=https://hub.example.edu]
                     [--token=...] [--config=config/chat_config.json] [-v]

Lines typed on stdin are sent to the active group. Commands:
    /join <group_id>      switch group
    /upload <path>        upload a file to the group
    /retry <client_id>    resend a failed message
    /typing               announce typing
    /quit                 leave and exit
"""

import asyncio
import logging
import sys
from pathlib import Path

from hauhub_chat.ChatConfig import load_config, merge_config
from hauhub_chat.LoggingSetup import setup_logging
from hauhub_chat.client.ChatClientApp import ChatClientApp
from hauhub_chat.client.ConsoleView import ConsoleView
from hauhub_chat.types import Notification

_REPO_ROOT = Path(__file__).resolve().parent
_DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "chat_config.json"
_LOGS_DIR = _REPO_ROOT / "logs"
_USAGE = "Commands: /join <group_id>, /upload <path>, /retry <client_id>, /typing, /quit"


def _parse_args(argv: list[str]) -> dict:
    """Parse CLI arguments.

    Returns:
        Dict with keys user, group, origin, token, config, verbose.

    Raises:
        SystemExit: If --user or --group is missing.
    """
    args: dict = {
        "user": None,
        "group": None,
        "origin": None,
        "token": None,
        "config": _DEFAULT_CONFIG_PATH,
        "verbose": "-v" in argv,
    }

    for arg in argv:
        for key in ("user", "group", "origin", "token", "config"):
            prefix = f"--{key}="
            if arg.startswith(prefix):
                value = arg.split("=", 1)[1]
                args[key] = Path(value) if key == "config" else value

    if args["user"] is None or args["group"] is None:
        print("ERROR: --user=<id> and --group=<id> are required.", file=sys.stderr)
        sys.exit(1)

    return args


async def _handle_line(app: ChatClientApp, line: str) -> bool:
    """Run one line of user input. Returns False when the user quits."""
    command, _, argument = line.strip().partition(" ")
    argument = argument.strip()

    if command == "/quit":
        return False
    if command == "/join" and argument:
        await app.switcher.switch_to(argument)
    elif command == "/upload" and argument:
        await app.uploader.upload(Path(argument).expanduser())
    elif command == "/retry" and argument:
        await app.composer.retry(argument)
    elif command == "/typing":
        await app.composer.send_typing()
    elif command.startswith("/"):
        app.bus.publish("notification", Notification("error", _USAGE))
    else:
        await app.composer.submit(line)
    return True


async def _run(args: dict) -> None:
    config = load_config(args["config"] if args["config"].exists() else None)
    if args["origin"]:
        config = merge_config(config, {"server": {"origin": args["origin"]}})

    app = ChatClientApp(config, user_id=args["user"], token=args["token"], verbose=args["verbose"])
    ConsoleView(app.bus, app.session)

    await app.start(args["group"])
    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            if not await _handle_line(app, line):
                break
    finally:
        await app.stop()


if __name__ == "__main__":
    try:
        parsed = _parse_args(sys.argv[1:])
        setup_logging(_LOGS_DIR, verbose=parsed["verbose"])
        asyncio.run(_run(parsed))
    except KeyboardInterrupt:
        logging.info("Client interrupted.")
        sys.exit(0)
    except SystemExit:
        raise
    except Exception as exc:
        logging.exception("Client ERROR: %s: %s", type(exc).__name__, exc)
        sys.exit(1)
