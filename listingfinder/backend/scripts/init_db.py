# scripts/init_db.py
import argparse
import asyncio

from app.config import settings
from app.db import engine
from app.logging_config import setup_logging
from app.models import Base


async def main(reset: bool) -> None:
    setup_logging()
    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()

    tables = ", ".join(sorted(Base.metadata.tables))
    print(f"OK: {tables} ready at {settings.LISTINGS_DB_URL}" + (" (reset)" if reset else ""))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the run-record tables.")
    parser.add_argument("--reset", action="store_true", help="drop existing run records first")
    args = parser.parse_args()
    asyncio.run(main(args.reset))
