# SPDX-License-Identifier: GPL-3.0-only
"""OTP Admin CLI"""

import argparse
import datetime
import sys

from base_logger import get_logger
from cims_otp.db_models import OTP, OTPIssuance
from cims_otp.otp_service import MAX_OTP_VERIFY_ATTEMPTS, RATE_LIMIT_WINDOW_MINUTES
from cims_otp.otp_store import PeeweeOTPStore
from cims_otp.utils import create_tables

logger = get_logger("otp.cli")


def create():
    """Create the OTP tables if they don't exist."""
    create_tables([OTP, OTPIssuance])
    logger.info("OTP tables are ready")
    sys.exit(0)


def purge(window_minutes):
    """Delete expired OTP records and issuance logs older than the window.

    Locked-out records (attempts exhausted) are kept until re-issued.
    """
    store = PeeweeOTPStore()
    now = datetime.datetime.now()

    records_removed = store.purge_expired(now, max_attempts=MAX_OTP_VERIFY_ATTEMPTS)
    issuances_removed = store.prune_issuances(
        now - datetime.timedelta(minutes=window_minutes)
    )

    logger.info(
        "Purged %d expired OTP records and %d stale issuance logs",
        records_removed,
        issuances_removed,
    )
    sys.exit(0)


def main():
    """Entry function"""

    parser = argparse.ArgumentParser(description="OTP Admin CLI")
    subparsers = parser.add_subparsers(dest="command", description="Expected commands")
    subparsers.add_parser("create-tables", help="Creates the OTP tables.")
    purge_parser = subparsers.add_parser(
        "purge",
        help=(
            "Deletes expired OTPs and stale rate-limit logs. "
            "OTPs locked by too many incorrect attempts are kept."
        ),
    )
    purge_parser.add_argument(
        "-w",
        "--window",
        type=int,
        default=RATE_LIMIT_WINDOW_MINUTES,
        help="Rate-limit window in minutes (default: %(default)s).",
    )
    args = parser.parse_args()

    if args.command == "create-tables":
        create()
    elif args.command == "purge":
        purge(window_minutes=args.window)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
