import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from leadscore.core.config import settings
from leadscore.core.exceptions import LeadScoreError
from leadscore.models.base import utcnow
from leadscore.repositories.score_history_repository import ScoreHistoryRepository
from leadscore.services.lead_scoring import ScoringEngine, translate_db_error

logger = logging.getLogger(__name__)


@dataclass
class DecayRunResult:
    contacts_processed: int = 0
    entries_decayed: int = 0
    failures: int = 0


class DecayScheduler:
    """Reverse ledger entries whose decay window has elapsed.

    A pass repeatedly pulls a batch of contacts with due entries and
    decays them through :meth:`ScoringEngine.decay_contact`, so decay
    shares the per-contact lock, row lock and retry policy of live
    scoring.  Contacts within a batch run concurrently up to
    *concurrency*.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        engine: ScoringEngine,
        batch_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        clock: Callable = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine
        self._batch_size = batch_size or settings.DECAY_BATCH_SIZE
        self._concurrency = max(1, concurrency or settings.DECAY_CONCURRENCY)
        self._clock = clock

    async def _due_contacts(self, exclude: set) -> List[UUID]:
        try:
            async with self._session_factory() as session:
                contact_ids = await ScoreHistoryRepository(
                    session
                ).find_contacts_with_due_decay(
                    self._clock(), self._batch_size + len(exclude)
                )
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc
        return [cid for cid in contact_ids if cid not in exclude][: self._batch_size]

    async def run_once(self) -> DecayRunResult:
        """Run one full decay pass and return its totals.

        A contact that fails is logged, counted and not retried again in
        the same pass; the remaining contacts are still processed.
        """
        result = DecayRunResult()
        semaphore = asyncio.Semaphore(self._concurrency)
        # Contacts not to pick up again in this pass
        skip: set = set()

        async def decay_one(contact_id: UUID) -> None:
            async with semaphore:
                try:
                    decayed = await self._engine.decay_contact(contact_id)
                except LeadScoreError as exc:
                    logger.warning(
                        "Decay failed for contact %s: %s", contact_id, exc.detail
                    )
                    skip.add(contact_id)
                    result.failures += 1
                    return
                result.contacts_processed += 1
                result.entries_decayed += decayed
                if not decayed:
                    skip.add(contact_id)

        while True:
            batch = await self._due_contacts(skip)
            if not batch:
                break
            await asyncio.gather(*(decay_one(cid) for cid in batch))

        if result.entries_decayed or result.failures:
            logger.info(
                "Decay pass complete: %d contact(s), %d entr(ies) decayed, %d failure(s)",
                result.contacts_processed,
                result.entries_decayed,
                result.failures,
            )
        return result


async def start_decay_loop(
    scheduler: DecayScheduler,
    interval_seconds: Optional[int] = None,
) -> None:
    """Infinite loop that runs a decay pass on a fixed interval.

    Parameters:
        scheduler: The :class:`DecayScheduler` to drive.
        interval_seconds: Sleep between passes; defaults to
            ``DECAY_INTERVAL_SECONDS``.
    """
    interval = interval_seconds or settings.DECAY_INTERVAL_SECONDS
    logger.info("Decay scheduler background task started (interval=%ds)", interval)
    while True:
        try:
            await scheduler.run_once()
        except Exception:
            logger.error("Decay cycle failed", exc_info=True)
        await asyncio.sleep(interval)
