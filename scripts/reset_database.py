import argparse
import logging
import sys

from smartgarden.config import get_settings
from smartgarden.database import ConnectionPool
from smartgarden.services.data_access import reset_database
from smartgarden.services.reseed import load_script


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Drop, recreate and reseed the smart garden database")
    parser.add_argument("--script", help="SQL script to replay (defaults to the bundled seed script)")
    parser.add_argument("--database-url", help="Override DATABASE_URL from the environment")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    if args.database_url:
        settings = settings.model_copy(update={"database_url": args.database_url})

    try:
        script = load_script(args.script or settings.seed_script_path)
    except OSError as exc:
        print(f"Error: cannot read script: {exc}")
        return 1

    pool = ConnectionPool.from_settings(settings)
    try:
        ok = reset_database(pool, script=script)
    finally:
        pool.drain(settings.pool_drain_grace_seconds)

    if ok:
        print("Database reset complete.")
        return 0
    print("Database reset failed; see log for the failing statement.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
