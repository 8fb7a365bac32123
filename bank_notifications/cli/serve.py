#!/usr/bin/env python3
"""
API server CLI

Runs the ingestion API with uvicorn.
"""
import argparse

import uvicorn
from dotenv import load_dotenv


# Load environment variables
load_dotenv()


def main():
    parser = argparse.ArgumentParser(description='Run the bank notification ingestion API')
    parser.add_argument('--host', default='127.0.0.1', help='Bind address (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=8000, help='Port (default: 8000)')
    parser.add_argument('--reload', action='store_true', help='Reload on code changes (dev)')

    args = parser.parse_args()

    print(f"🚀 Serving on http://{args.host}:{args.port}")
    uvicorn.run("bank_notifications.api:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
