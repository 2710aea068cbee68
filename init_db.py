# init_db.py
"""
Create the schema against SQL_DSN.

    python init_db.py          # create missing tables
    python init_db.py --drop   # drop everything first
"""
import argparse
import asyncio

from telecare.core.logging import configure_logging
from telecare.db.sql import dispose_engine, init_db


async def main(drop: bool) -> None:
    try:
        await init_db(drop=drop)
    finally:
        await dispose_engine()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create telecare database tables")
    parser.add_argument("--drop", action="store_true", help="drop all tables before creating them")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(main(args.drop))
