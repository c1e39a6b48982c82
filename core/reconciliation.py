import asyncio
import logging
from datetime import timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from config.settings import settings
from core.card import RECEIPT_FINAL_STATES, PaymeCardClient, extract_receipt
from crud.receipt import get_unsettled_receipts, save_receipt
from db.session import SessionLocal

logger = logging.getLogger(__name__)


async def _refresh_receipts(db: Session, client: PaymeCardClient) -> int:
    updated = 0
    for receipt in get_unsettled_receipts(db, RECEIPT_FINAL_STATES):
        try:
            data = await client.call("receipts.check", {"id": receipt.id})
        except Exception as e:
            logger.warning("Receipt check failed for %s: %s", receipt.id, e)
            continue

        state = (data.get("result") or {}).get("state")
        if state is None or state == receipt.state:
            continue

        payload = extract_receipt(data) or {**(receipt.payload or {"_id": receipt.id}), "state": state}
        save_receipt(db, receipt.user_id, payload)
        updated += 1
    return updated


class ReceiptReconciler:
    """Periodically re-checks card receipts that have not reached a final state.

    Owned by the application lifespan: ``start()`` on startup and
    ``shutdown()`` on shutdown.
    """

    def __init__(
        self,
        client: Optional[PaymeCardClient] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[int] = None,
    ):
        self.client = client or PaymeCardClient()
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or settings.RECON_INTERVAL_SECONDS
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def tick(self) -> int:
        db = self.session_factory()
        try:
            updated = asyncio.run(_refresh_receipts(db, self.client))
            if updated:
                logger.info("Receipt reconciliation updated %d receipt(s)", updated)
            return updated
        except Exception as e:
            logger.warning("Receipt reconciliation tick failed: %s", e)
            return 0
        finally:
            db.close()

    def start(self) -> Optional[BackgroundScheduler]:
        if self._scheduler is not None:
            return self._scheduler
        sched = BackgroundScheduler(timezone=str(timezone.utc))
        sched.add_job(self.tick, 'interval', seconds=self.interval_seconds, id='payme-receipts', max_instances=1, coalesce=True)
        sched.start()
        self._scheduler = sched
        logger.info("Receipt reconciliation scheduler started: every %ss", self.interval_seconds)
        return sched

    def shutdown(self) -> None:
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Receipt reconciliation scheduler stopped")
