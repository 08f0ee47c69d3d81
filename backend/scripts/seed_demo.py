"""Seed a demo conversation into the message store.

Usage (from repository root):
    python backend/scripts/seed_demo.py --user-id web-user-demo

Usage (from backend directory):
    python scripts/seed_demo.py
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import delete

# Make `relaychat` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from relaychat.db.session import get_sessionmaker, init_db
from relaychat.models.message import Message
from relaychat.services.messages import save_message


DEFAULT_CONVERSATION_ID = "demo-conversation-001"
DEFAULT_USER_ID = "web-user-demo"


def build_demo_turns() -> list[tuple[bool, str]]:
    """Return a short deterministic user/bot exchange."""

    return [
        (False, "Tell me what this chatbot can do."),
        (True, "I can answer questions about internal documents, schedules and working tips."),
        (False, "What are the important events this month?"),
        (True, "The quarterly review is on the 24th and the office move starts on the 30th."),
    ]


def reset_conversation(db, conversation_id: str) -> None:
    """Remove existing rows for the demo conversation."""

    db.execute(delete(Message).where(Message.conversation_id == conversation_id))
    db.commit()


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed a demo conversation into the message store.")
    parser.add_argument(
        "--conversation-id",
        default=DEFAULT_CONVERSATION_ID,
        help=f"Conversation ID to seed (default: {DEFAULT_CONVERSATION_ID})",
    )
    parser.add_argument(
        "--user-id",
        default=DEFAULT_USER_ID,
        help=f"User ID owning the conversation (default: {DEFAULT_USER_ID})",
    )
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Do not delete existing messages for the conversation before seeding.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data and print a short summary."""

    args = parse_args()
    if not init_db():
        print("DATABASE_URL is not set; nothing to seed.")
        raise SystemExit(1)

    session_factory = get_sessionmaker()
    base = datetime.now(timezone.utc) - timedelta(minutes=10)
    created = 0
    with session_factory() as db:
        if not args.no_reset:
            reset_conversation(db, args.conversation_id)
        for idx, (is_bot, content) in enumerate(build_demo_turns()):
            stored = save_message(
                db,
                content=content,
                is_bot=is_bot,
                created_at=base + timedelta(minutes=idx),
                conversation_id=args.conversation_id,
                user_id=args.user_id,
            )
            if stored is not None:
                created += 1

    print("Seed complete")
    print(f"conversation_id={args.conversation_id}")
    print(f"user_id={args.user_id}")
    print(f"messages_created={created}")


if __name__ == "__main__":
    main()
