#!/usr/bin/env python3
"""
Create the deals, meetings and actions tables if they do not exist.

Usage:
    DATABASE_URL=postgresql://... python scripts/setup_schema.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from insight_actions.clients.postgres_client import PostgresClient
from insight_actions.logging import get_logger

logger = get_logger('setup_schema')


async def main() -> int:
    client = PostgresClient()
    try:
        await client.connect()
        if not await client.verify_connectivity():
            logger.error('setup_schema.unreachable')
            return 1
        executed = await client.setup_schema()
        for statement in executed:
            print(statement)
        return 0
    finally:
        await client.close()


if __name__ == '__main__':
    sys.exit(asyncio.run(main()))
