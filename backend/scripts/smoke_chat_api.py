"""Send one real query to the configured chat API and print the reply.

Usage (from repo root):
    python backend/scripts/smoke_chat_api.py "Hello"

Usage (from backend/):
    python scripts/smoke_chat_api.py "Hello" --conversation-id <id>
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from relaychat.services.chat_api import get_default_chat_client


def main() -> None:
    parser = argparse.ArgumentParser(description="Smoke test the chat API.")
    parser.add_argument("query")
    parser.add_argument("--user", default="smoke-user")
    parser.add_argument("--conversation-id", default=None)
    args = parser.parse_args()

    reply = get_default_chat_client().send(args.query, args.user, args.conversation_id)
    print(
        json.dumps(
            {
                "answer": reply.answer,
                "conversation_id": reply.conversation_id,
                "metadata": reply.metadata,
            },
            indent=2,
            ensure_ascii=False,
        )
    )


if __name__ == "__main__":
    main()
