#!/usr/bin/env python3
"""
Send one admin broadcast through the configured dispatcher.

Useful to check the delivery agent end to end, or to see the QR fallback
kick in when the agent is down.  Honors the same environment as the
service (NOTIFICATIONS_ENABLED, AGENT_BASE_URL, ARTIFACT_DIR, ...).

Usage:
    python scripts/send_test_notification.py 9876543210
    python scripts/send_test_notification.py 9876543210 --message "Agent check" --urgent
    python scripts/send_test_notification.py 9876543210 --probe-only

Exit code is 0 when the recipient was delivered or a QR artifact was produced.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from tasknotify.core.dispatch.domain import Recipient  # noqa: E402
from tasknotify.core.dispatch.events import AdminBroadcast  # noqa: E402
from tasknotify.infra.http_client import close_all_sessions  # noqa: E402
from tasknotify.infra.logging_config import setup_logging  # noqa: E402
from tasknotify.infra.notification_service import agent_status, get_dispatcher  # noqa: E402


async def run(args) -> int:
    try:
        if args.probe_only:
            state = await agent_status()
            print(json.dumps(state.to_dict(), indent=2))
            return 0 if state.reachable else 1

        event = AdminBroadcast(message=args.message, urgent=args.urgent)
        recipient = Recipient(id="cli", display_name=args.name, address=args.phone)
        result = await get_dispatcher().dispatch(event, [recipient])
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.any_delivered else 1
    finally:
        await close_all_sessions()


def main():
    parser = argparse.ArgumentParser(
        description="Send a test WhatsApp notification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("phone", help="Recipient phone number (local or international)")
    parser.add_argument("--message", "-m", default="Test notification from the task system.")
    parser.add_argument("--name", "-n", default="Admin", help="Name used in the greeting")
    parser.add_argument("--urgent", "-u", action="store_true", help="Mark the message as important")
    parser.add_argument("--probe-only", action="store_true", help="Only check agent health")
    parser.add_argument("--log-level", default="WARNING")

    args = parser.parse_args()
    setup_logging(level=args.log_level)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
