"""Entry point for `python -m wabot` / `wabot`.

Subcommands:
    wabot               Run the service (default)
    wabot reset-auth    Wipe stored WhatsApp credentials (forces a new QR pairing)
"""

from __future__ import annotations

import argparse
import asyncio
import sys


def _run() -> None:
    from wabot.app import WabotApp

    app = WabotApp()
    asyncio.run(app.run())


def _reset_auth() -> None:
    from wabot.config import get_settings
    from wabot.session import DirectoryCredentialStore

    store = DirectoryCredentialStore(get_settings().auth_dir)
    ok = asyncio.run(store.wipe())
    if not ok:
        print(f"Could not fully wipe {store.location}", file=sys.stderr)
        sys.exit(1)
    print(f"Credentials wiped: {store.location}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="wabot",
        description="WhatsApp AI auto-responder with an HTTP control surface",
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Run the service (default)")
    sub.add_parser("reset-auth", help="Wipe stored credentials so the next start pairs again")

    args = parser.parse_args()

    match args.command:
        case "reset-auth":
            _reset_auth()
        case _:
            _run()


if __name__ == "__main__":
    main()
