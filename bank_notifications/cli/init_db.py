#!/usr/bin/env python3
"""
Database initialization script

Creates the transactions table used for storage and merchant history.
"""
import sys
from pathlib import Path

import psycopg2

from bank_notifications.utils.db_connection import check_connection, get_db_connection


def run_sql_file(conn, sql_file: Path, description: str):
    """Execute a SQL file"""
    print(f"\n📄 {description}")
    print(f"   File: {sql_file}")

    with open(sql_file, 'r') as f:
        sql = f.read()

    cursor = conn.cursor()
    try:
        cursor.execute(sql)
        conn.commit()
        print(f"   ✅ Success")
    except psycopg2.Error as e:
        conn.rollback()
        print(f"   ❌ Error: {e}")
        raise
    finally:
        cursor.close()


def print_summary(conn):
    """Print database summary"""
    cursor = conn.cursor()

    print("\n" + "=" * 80)
    print("📊 DATABASE SUMMARY")
    print("=" * 80)

    cursor.execute("SELECT COUNT(*) FROM transactions")
    print(f"Transactions: {cursor.fetchone()[0]}")

    cursor.execute("SELECT COUNT(DISTINCT merchant) FROM transactions")
    print(f"Known merchants: {cursor.fetchone()[0]}")

    print("=" * 80)

    cursor.close()


def main():
    """Main initialization function"""
    print("=" * 80)
    print("🚀 TRANSACTIONS DATABASE INITIALIZATION")
    print("=" * 80)

    schema_file = Path(__file__).parent.parent / "db" / "schema.sql"
    if not schema_file.exists():
        print(f"\n❌ Missing schema file: {schema_file}")
        sys.exit(1)

    # Connect to database
    print("\n🔌 Connecting to database...")
    try:
        conn = get_db_connection()
    except psycopg2.Error as e:
        print(f"   ❌ Connection failed: {e}")
        print("\nMake sure Docker is running:")
        print("   docker-compose up -d")
        sys.exit(1)

    if not check_connection(conn):
        conn.close()
        sys.exit(1)
    print("   ✅ Connected")

    try:
        run_sql_file(conn, schema_file, "Creating database schema")
        print_summary(conn)

        print("\n✅ Database initialization complete!")
        print("\nNext steps:")
        print("  1. Process a message: bank-process \"card #5233 charged EGP 150.00 at Starbucks\"")
        print("  2. Or run the API:    bank-serve --port 8000")

    except psycopg2.Error as e:
        print(f"\n❌ Initialization failed: {e}")
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
