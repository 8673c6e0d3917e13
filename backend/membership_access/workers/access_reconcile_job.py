"""
Access Grant Reconciliation Worker.

Background job that walks every profile and adds the training_access
grants their license entitles them to. Additive only: grants are never
removed here.

Run as: python -m membership_access.workers.access_reconcile_job [--once]

Configuration:
- ACCESS_RECONCILE_INTERVAL: Seconds between cycles (default: 3600)
- ACCESS_RECONCILE_BATCH_SIZE: Profiles per page (default: 200)
"""

import argparse
import os
import signal
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from membership_access.database.session import get_db_session_sync
from membership_access.repositories.catalog_repo import CatalogRepository
from membership_access.repositories.profiles_repo import ProfileRepository
from membership_access.services.access_reconciler import AccessGrantReconciler

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

POLL_INTERVAL = int(os.getenv("ACCESS_RECONCILE_INTERVAL", "3600"))
BATCH_SIZE = int(os.getenv("ACCESS_RECONCILE_BATCH_SIZE", "200"))

_shutdown = False


def _handle_signal(signum, frame):
    global _shutdown
    logger.info("Shutdown signal received", extra={"signal": signum})
    _shutdown = True


@dataclass
class ReconcileJobStats:
    """Track reconciliation run statistics."""

    profiles_processed: int = 0
    grants_created: int = 0
    grants_present: int = 0
    grant_errors: int = 0
    profile_errors: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        duration = (datetime.now(timezone.utc) - self.start_time).total_seconds()
        return {
            "profiles_processed": self.profiles_processed,
            "grants_created": self.grants_created,
            "grants_present": self.grants_present,
            "grant_errors": self.grant_errors,
            "profile_errors": self.profile_errors,
            "duration_seconds": round(duration, 2),
        }


def reconcile_all(db: Session, batch_size: int = BATCH_SIZE) -> ReconcileJobStats:
    """Reconcile every profile against the active catalog, committing per profile."""
    stats = ReconcileJobStats()
    reconciler = AccessGrantReconciler(db)
    modules = CatalogRepository(db).list_active_modules()

    if not modules:
        logger.info("No active modules, nothing to reconcile")
        return stats

    for batch in ProfileRepository(db).iter_batches(batch_size):
        for profile in batch:
            try:
                result = reconciler.reconcile(profile, modules)
                db.commit()
            except Exception:
                logger.error(
                    "Failed to reconcile profile",
                    extra={"user_id": profile.id},
                    exc_info=True,
                )
                db.rollback()
                stats.profile_errors += 1
                continue

            stats.profiles_processed += 1
            stats.grants_created += len(result.granted)
            stats.grants_present += len(result.already_present)
            stats.grant_errors += len(result.errors)

    return stats


def run_cycle(db: Optional[Session] = None) -> ReconcileJobStats:
    """Run one full reconciliation cycle."""
    db_gen = None
    if db is None:
        db_gen = get_db_session_sync()
        db = next(db_gen)

    try:
        stats = reconcile_all(db)
        result = stats.to_dict()
        logger.info("Access reconciliation cycle complete", extra=result)
        return stats

    except Exception:
        logger.error("Access reconciliation cycle failed", exc_info=True)
        db.rollback()
        stats = ReconcileJobStats()
        stats.profile_errors += 1
        return stats
    finally:
        if db_gen is not None:
            db_gen.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Reconcile training access grants")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    args = parser.parse_args(argv)

    if args.once:
        stats = run_cycle()
        return 1 if stats.profile_errors else 0

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    logger.info(
        "Access reconciliation worker started",
        extra={"poll_interval": POLL_INTERVAL, "batch_size": BATCH_SIZE},
    )

    while not _shutdown:
        run_cycle()
        # Sleep in 1-second increments for responsive shutdown
        for _ in range(POLL_INTERVAL):
            if _shutdown:
                break
            time.sleep(1)

    logger.info("Access reconciliation worker stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
