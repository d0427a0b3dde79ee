#!/usr/bin/env python3
"""
Database setup script for the session store.

Creates the session table in the database named by SESSION_STORE_DATABASE_URL
and reports how many sessions are currently visible.
"""

import asyncio
import sys

from session_store.core.config import settings
from session_store.store.store import SQLAlchemyStore


async def main() -> bool:
    """Initialize database based on configuration"""
    print("🗄️  Session Store Database Setup")
    print("=" * 40)

    store = SQLAlchemyStore.from_settings(settings, create_schema=True)

    print("\n🔧 Initializing database...")
    try:
        await store.connect()
        print("✅ Database initialized successfully!")

        result = await store.length()
        if not result.ok:
            print(f"⚠️  Warning: {result.error}")
            return False
        print(f"Visible sessions: {result.value}")
        return True

    except Exception as e:
        print(f"❌ Database initialization failed: {e}")
        return False
    finally:
        await store.disconnect()


if __name__ == "__main__":
    success = asyncio.run(main())
    sys.exit(0 if success else 1)
