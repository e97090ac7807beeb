"""
Scheduled cleanup entry point.

    python -m app.cleanup [--otp-retention-days N] [--blacklist-retention-days N]

Intended for cron; prints the JSON summary and exits non-zero on failure.
"""
import argparse
import json
import logging
import sys

from app.database import db_manager
from app.services.cleanup_service import cleanup_service

logger = logging.getLogger("app.cleanup")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete expired OTP codes, bans and refresh tokens")
    parser.add_argument("--otp-retention-days", type=int, default=None,
                        help="Keep expired codes this many days (default: OTP_RETENTION_DAYS)")
    parser.add_argument("--blacklist-retention-days", type=int, default=None,
                        help="Keep expired bans this many days (default: BLACKLIST_RETENTION_DAYS)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = parse_args(argv)

    db = db_manager.session()
    try:
        summary = cleanup_service.run(db, args.otp_retention_days, args.blacklist_retention_days)
    except Exception:
        db.rollback()
        logger.exception("Cleanup failed")
        return 1
    finally:
        db.close()

    print(json.dumps(summary))
    return 0


if __name__ == "__main__":
    sys.exit(main())
