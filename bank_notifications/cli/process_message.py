#!/usr/bin/env python3
"""
Notification processing CLI

Runs bank notification messages through the ingestion pipeline.
"""
import argparse
import json
import sys
from pathlib import Path
from typing import List

import psycopg2
from dotenv import load_dotenv

from bank_notifications.config import Settings
from bank_notifications.core.errors import MalformedInput, PersistenceFailure
from bank_notifications.core.ingestion_orchestrator import build_orchestrator
from bank_notifications.core.notifications import format_notification_body
from bank_notifications.utils.db_connection import get_connection_pool


# Load environment variables
load_dotenv()


def read_messages(args) -> List[str]:
    """Messages from the command line, a file (one per line) or stdin"""
    if args.message:
        return [args.message]

    if args.file:
        path = Path(args.file)
        if not path.exists():
            print(f"❌ File not found: {path}")
            sys.exit(1)
        lines = path.read_text(encoding='utf-8').splitlines()
    else:
        lines = sys.stdin.read().splitlines()

    return [line for line in lines if line.strip()]


def main():
    """Main processing function"""
    parser = argparse.ArgumentParser(description='Process bank notification messages')
    parser.add_argument('message', nargs='?', help='Notification text (omit to read --file or stdin)')
    parser.add_argument('--file', help='File with one message per line')
    parser.add_argument('--llm', action='store_true', help='Enable LLM extraction (uses API credits)')
    parser.add_argument('--dry-run', action='store_true', help='Parse and assemble but do not insert')
    parser.add_argument('--json', action='store_true', help='Print results as JSON lines')

    args = parser.parse_args()

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    # Use CLI flag to override, otherwise use .env setting
    if args.llm:
        settings.enable_llm = True

    messages = read_messages(args)
    if not messages:
        print("❌ No message given")
        sys.exit(2)

    pool = None
    if not args.dry_run:
        try:
            pool = get_connection_pool(minconn=1, maxconn=1)
        except psycopg2.Error as e:
            print(f"❌ Connection failed: {e}")
            print("\nUse --dry-run to process without a database")
            sys.exit(1)

    exit_code = 0
    try:
        orchestrator = build_orchestrator(settings, pool=pool)

        for message in messages:
            try:
                result = orchestrator.process_message(message)
            except MalformedInput as e:
                print(f"⚠️  Rejected: {e}")
                print(f"   Message: {message[:60]}")
                exit_code = max(exit_code, 2)
                continue
            except PersistenceFailure as e:
                print(f"❌ Failed to save transaction: {e}")
                exit_code = 1
                continue

            txn = result.transaction
            if args.json:
                print(json.dumps({'id': result.transaction_id, **txn.to_dict()}, ensure_ascii=False))
                continue

            status = "✅" if txn.include_in_insights else "↔️ "
            print(f"{status} {txn.merchant:<40} → {txn.category} ({txn.category_source})")
            print(f"       {txn.amount_base:>10,.2f} {settings.base_currency}"
                  f"  (from {txn.original_amount} {txn.original_currency})")
            print(f"       {format_notification_body(txn, settings.base_currency)}")
            if result.transaction_id:
                print(f"       💾 Stored as {result.transaction_id}")

        if len(messages) > 1 and not args.json:
            orchestrator.print_stats()

    finally:
        if pool is not None:
            pool.closeall()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
