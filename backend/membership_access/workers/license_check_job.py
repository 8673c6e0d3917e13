"""
Developer License Check Worker.

Applies the developer license lapse policy on a timer: deactivates a
lapsed license and, once its grace period is over, revokes the subject's
admin role.

Run as: python -m membership_access.workers.license_check_job [--once]

Configuration:
- LICENSE_CHECK_INTERVAL: Seconds between cycles (default: 86400)
- LICENSE_SUBJECT_EMAIL: Account whose admin role depends on the license
- LICENSE_GRACE_DAYS: Grace period for newly created records (default: 30)
"""

import argparse
import os
import signal
import logging
import time
from typing import Optional

from sqlalchemy.orm import Session

from membership_access.database.session import get_db_session_sync
from membership_access.services.license_expiry_service import (
    LicenseExpiryService,
    LicenseCheckResult,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

POLL_INTERVAL = int(os.getenv("LICENSE_CHECK_INTERVAL", "86400"))

_shutdown = False


def _handle_signal(signum, frame):
    global _shutdown
    logger.info("Shutdown signal received", extra={"signal": signum})
    _shutdown = True


def run_cycle(db: Optional[Session] = None) -> Optional[LicenseCheckResult]:
    """Run one license check. Returns the status payload, None on failure."""
    db_gen = None
    if db is None:
        db_gen = get_db_session_sync()
        db = next(db_gen)

    try:
        result = LicenseExpiryService(db).run_check()
        logger.info(
            "License check cycle complete",
            extra={"action": result.action, "state": result.state},
        )
        return result

    except Exception:
        logger.error("License check cycle failed", exc_info=True)
        db.rollback()
        return None
    finally:
        if db_gen is not None:
            db_gen.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Enforce the developer license lapse policy")
    parser.add_argument("--once", action="store_true", help="Run a single check and exit")
    args = parser.parse_args(argv)

    if args.once:
        return 0 if run_cycle() is not None else 1

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    logger.info("License check worker started", extra={"poll_interval": POLL_INTERVAL})

    while not _shutdown:
        run_cycle()
        for _ in range(POLL_INTERVAL):
            if _shutdown:
                break
            time.sleep(1)

    logger.info("License check worker stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
