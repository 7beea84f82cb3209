#!/usr/bin/env python3
"""Send a test push straight to one device token, or a notification to a user's registered devices.

Examples:
    python scripts/send_test_push.py token apns 8f3c...e1
    python scripts/send_test_push.py user 42 --title Hello --body "It works"
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from pushhub.domain.push.models import Gateway, NotificationDescriptor
from pushhub.infra.cache.redis_store import RedisStore
from pushhub.services.push_service import build_push_service
from pushhub.settings import get_settings


async def run(args: argparse.Namespace) -> bool:
    settings = get_settings()
    store = RedisStore(settings.redis_url)
    service = build_push_service(settings, store)
    try:
        if args.command == "token":
            report = await service.test_push(args.token, args.gateway)
        else:
            descriptor = NotificationDescriptor(title=args.title, body=args.body, data=json.loads(args.data))
            report = await service.send_to_user(args.user_id, descriptor)
    finally:
        await service.aclose()
        await store.disconnect()
    print(report.model_dump_json(indent=2))
    return report.success


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    sub = parser.add_subparsers(dest="command", required=True)

    token = sub.add_parser("token", help="test push to a single device token")
    token.add_argument("gateway", choices=[g.value for g in Gateway])
    token.add_argument("token")

    user = sub.add_parser("user", help="push to every registered device of a user")
    user.add_argument("user_id")
    user.add_argument("--title", default="PushHub")
    user.add_argument("--body", default="Hello from PushHub")
    user.add_argument("--data", default="{}", help="JSON object sent as notification data")

    args = parser.parse_args()
    return 0 if asyncio.run(run(args)) else 1


if __name__ == "__main__":
    sys.exit(main())
