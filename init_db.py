"""Create the tables the import service reads and writes.

    python init_db.py          # create missing tables
    python init_db.py --drop   # drop everything first (destroys imported postings)
"""

import argparse
import asyncio
import sys

from jobimport.config import settings
from jobimport.db import engine
from jobimport.models import Base


async def create_schema(drop: bool = False) -> list[str]:
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    return sorted(Base.metadata.tables)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--drop", action="store_true", help="drop existing tables before creating them")
    args = parser.parse_args(argv)

    print(f"Schema target: {settings.db.display_target}")
    try:
        tables = asyncio.run(create_schema(drop=args.drop))
    except Exception as e:
        print(f"Schema creation failed: {e}", file=sys.stderr)
        return 1
    print(f"{'Recreated' if args.drop else 'Ensured'} tables: {', '.join(tables)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
