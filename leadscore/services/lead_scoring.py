import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar
from uuid import UUID

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadscore.core.config import settings
from leadscore.core.constants import (
    DECAY_REASON,
    DESCRIPTION_MAX_LENGTH,
    HISTORY_DEFAULT_LIMIT,
    HISTORY_MAX_LIMIT,
    REASON_MAX_LENGTH,
    RELATED_ID_MAX_LENGTH,
    RELATED_TYPE_MAX_LENGTH,
    SCORE_MAX,
    SCORE_MIN,
)
from leadscore.core.exceptions import (
    ConcurrencyConflictError,
    ContactNotFoundError,
    InvalidConditionError,
    LeadScoreError,
    PersistenceError,
    ValidationError,
)
from leadscore.core.locks import ContactLockRegistry, contact_locks
from leadscore.models.base import utcnow
from leadscore.models.contact import Contact
from leadscore.repositories.contact_repository import ContactRepository
from leadscore.repositories.rule_application_repository import (
    RuleApplicationRepository,
)
from leadscore.repositories.score_history_repository import ScoreHistoryRepository
from leadscore.repositories.status_change_repository import StatusChangeRepository
from leadscore.schemas.common import ContactStatus, ScoringEventType, SkipReason
from leadscore.schemas.score import (
    AppliedRule,
    BulkAdjustItem,
    ScoreHistoryEntryOut,
    ScoreOutcome,
    SkippedRule,
)
from leadscore.services.conditions import evaluate_conditions
from leadscore.services.notifier import StatusChangeNotifier
from leadscore.services.rule_store import ModelSnapshot, RuleSnapshot, RuleStore
from leadscore.services.threshold_evaluator import StatusTransition, detect_transition

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATEs that mean "another transaction got there first"
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

_OCCURRENCE_CONSTRAINT_MARKERS = (
    "uq_rule_applications_occurrence",
    "rule_applications.occurrence_index",
)


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_db_error(exc: SQLAlchemyError) -> LeadScoreError:
    """Map a SQLAlchemy failure onto the scoring error hierarchy.

    Lock timeouts, deadlocks, serialization failures, SQLite's
    ``database is locked`` and a duplicate occurrence index become
    :class:`ConcurrencyConflictError` (retryable); anything else is a
    :class:`PersistenceError`.
    """
    message = str(getattr(exc, "orig", None) or exc)
    if isinstance(exc, IntegrityError):
        if any(marker in message for marker in _OCCURRENCE_CONSTRAINT_MARKERS):
            return ConcurrencyConflictError(
                "Rule occurrence was recorded concurrently, please retry"
            )
        return PersistenceError(f"Score store rejected the write: {message}")
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in _CONFLICT_SQLSTATES or "database is locked" in message:
            return ConcurrencyConflictError()
    return PersistenceError()


def _coerce_contact_id(contact_id: Any) -> UUID:
    if contact_id is None or contact_id == "":
        raise ValidationError("contact_id is required")
    if isinstance(contact_id, UUID):
        return contact_id
    try:
        return UUID(str(contact_id))
    except ValueError:
        raise ValidationError(f"Invalid contact_id '{contact_id}'")


def _coerce_event_type(event_type: Any) -> ScoringEventType:
    if event_type is None or event_type == "":
        raise ValidationError("event_type is required")
    try:
        return ScoringEventType(event_type)
    except ValueError:
        raise ValidationError(f"Unknown event type '{event_type}'")


def _require_reason(reason: Optional[str]) -> str:
    if reason is None or not str(reason).strip():
        raise ValidationError("A non-empty reason is required")
    reason = str(reason).strip()
    if len(reason) > REASON_MAX_LENGTH:
        raise ValidationError(
            f"reason must be at most {REASON_MAX_LENGTH} characters"
        )
    return reason


def _check_length(name: str, value: Optional[str], limit: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    if len(value) > limit:
        raise ValidationError(f"{name} must be at most {limit} characters")


def _require_points(points: Any) -> int:
    if isinstance(points, bool) or not isinstance(points, int):
        raise ValidationError("points must be an integer")
    if not SCORE_MIN <= points <= SCORE_MAX:
        raise ValidationError(f"points must be between {SCORE_MIN} and {SCORE_MAX}")
    return points


class ScoringEngine:
    """Apply events and manual changes to a contact's score.

    Every operation on one contact runs inside a single critical section
    (in-process lock plus a row lock on the contact) and a single
    database transaction: occurrence records, ledger entries, the cached
    score, the status and the status audit row commit together or not at
    all.  Conflicts are retried with exponential backoff, each attempt
    on a fresh session; status notifications go out only after commit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        rule_store: Optional[RuleStore] = None,
        notifier: Optional[StatusChangeNotifier] = None,
        locks: Optional[ContactLockRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ) -> None:
        self._session_factory = session_factory
        self._rule_store = rule_store or RuleStore()
        self._notifier = notifier
        self._locks = locks or contact_locks
        self._clock = clock
        self._max_retries = max(
            1, settings.SCORING_MAX_RETRIES if max_retries is None else max_retries
        )
        self._retry_backoff = (
            settings.SCORING_RETRY_BACKOFF_SECONDS
            if retry_backoff is None
            else retry_backoff
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_event(
        self,
        contact_id: Any,
        event_type: Any,
        description: Optional[str] = None,
        related_type: Optional[str] = None,
        related_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ScoreOutcome:
        """Run every matching rule of the contact's model against one event.

        Raises:
            ValidationError: missing contact id or unknown event type.
            ContactNotFoundError: the contact does not exist.
            ConcurrencyConflictError: still conflicting after all retries.
            PersistenceError: the store failed; nothing was committed.
        """
        cid = _coerce_contact_id(contact_id)
        event = _coerce_event_type(event_type)
        _check_length("description", description, DESCRIPTION_MAX_LENGTH)
        _check_length("related_type", related_type, RELATED_TYPE_MAX_LENGTH)
        _check_length("related_id", related_id, RELATED_ID_MAX_LENGTH)
        if context is not None and not isinstance(context, dict):
            raise ValidationError("context must be an object")

        async def work(session: AsyncSession):
            return await self._apply_event(
                session, cid, event, description, related_type, related_id, context or {}
            )

        return await self._run(cid, work)

    async def adjust_score(
        self, contact_id: Any, points: int, reason: str
    ) -> ScoreOutcome:
        """Append a manual ledger entry of *points* (any signed integer)."""
        cid = _coerce_contact_id(contact_id)
        reason = _require_reason(reason)
        points = _require_points(points)

        async def work(session: AsyncSession):
            return await self._apply_adjustment(session, cid, points, reason)

        return await self._run(cid, work)

    async def bulk_adjust(
        self, contact_ids: List[Any], points: int, reason: str
    ) -> List[BulkAdjustItem]:
        """Adjust each contact in its own transaction.

        The whole batch is validated before the first write.  After that
        one contact failing never affects the others; the failure is
        reported in that contact's result item.
        """
        reason = _require_reason(reason)
        points = _require_points(points)
        if not contact_ids:
            raise ValidationError("At least one contact_id is required")
        if len(contact_ids) > HISTORY_MAX_LIMIT:
            raise ValidationError(
                f"At most {HISTORY_MAX_LIMIT} contacts can be adjusted at once"
            )
        ids = [_coerce_contact_id(raw_id) for raw_id in contact_ids]

        results: List[BulkAdjustItem] = []
        for cid in ids:
            try:
                outcome = await self.adjust_score(cid, points, reason)
            except LeadScoreError as exc:
                logger.warning("Bulk adjustment failed for contact %s: %s", cid, exc.detail)
                results.append(
                    BulkAdjustItem(contact_id=cid, success=False, error=exc.detail)
                )
                continue
            results.append(BulkAdjustItem(contact_id=cid, success=True, outcome=outcome))
        return results

    async def recalculate_score(self, contact_id: Any) -> ScoreOutcome:
        """Rebuild ``lead_score`` from the signed sum of the ledger."""
        cid = _coerce_contact_id(contact_id)

        async def work(session: AsyncSession):
            return await self._apply_recalculation(session, cid)

        return await self._run(cid, work)

    async def reset_status(
        self, contact_id: Any, status: Any, reason: str
    ) -> ScoreOutcome:
        """Force the contact's status; the only path that may demote."""
        cid = _coerce_contact_id(contact_id)
        reason = _require_reason(reason)
        try:
            target = ContactStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown status '{status}'")

        async def work(session: AsyncSession):
            return await self._apply_status_reset(session, cid, target, reason)

        return await self._run(cid, work)

    async def decay_contact(self, contact_id: UUID) -> int:
        """Reverse every due, not-yet-decayed entry of one contact.

        Returns the number of entries this call decayed; entries already
        decayed by an earlier or concurrent pass are skipped.
        """

        async def work(session: AsyncSession):
            return await self._apply_decay(session, contact_id)

        return await self._run(contact_id, work)

    async def get_history(
        self, contact_id: Any, limit: int = HISTORY_DEFAULT_LIMIT
    ) -> List[ScoreHistoryEntryOut]:
        """Return ledger entries for a contact, most recent first."""
        cid = _coerce_contact_id(contact_id)
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError("limit must be an integer")
        if limit < 1 or limit > HISTORY_MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {HISTORY_MAX_LIMIT}")

        try:
            async with self._session_factory() as session:
                contact = await ContactRepository(session).get_by_id(cid)
                if contact is None:
                    raise ContactNotFoundError(f"Contact {cid} not found")
                entries = await ScoreHistoryRepository(session).list_for_contact(
                    cid, limit
                )
                return [ScoreHistoryEntryOut.model_validate(e) for e in entries]
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc

    # ------------------------------------------------------------------
    # Transaction & retry plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        contact_id: UUID,
        work: Callable[[AsyncSession], Awaitable[Tuple[T, Optional[StatusTransition]]]],
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._locks.hold(contact_id):
                    result, transition = await self._in_transaction(work)
            except ConcurrencyConflictError:
                if attempt >= self._max_retries:
                    logger.warning(
                        "Giving up on contact %s after %d conflicting attempts",
                        contact_id,
                        attempt,
                    )
                    raise
                delay = self._retry_backoff * (2 ** (attempt - 1))
                logger.info(
                    "Conflict on contact %s (attempt %d/%d), retrying in %.3fs",
                    contact_id,
                    attempt,
                    self._max_retries,
                    delay,
                )
                await asyncio.sleep(delay)
                continue

            if transition is not None:
                await self._notify(transition)
            return result

    async def _in_transaction(self, work):
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    return await work(session)
        except SQLAlchemyError as exc:
            error = translate_db_error(exc)
            if isinstance(error, PersistenceError):
                logger.error("Score store failure: %s", exc, exc_info=True)
            raise error from exc

    async def _notify(self, transition: StatusTransition) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify(transition)
        except Exception:
            # The transition is already committed; delivery is best-effort
            logger.error(
                "Failed to deliver status change for contact %s",
                transition.contact_id,
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Per-contact units of work (run inside the lock and transaction)
    # ------------------------------------------------------------------

    async def _lock_contact(self, session: AsyncSession, contact_id: UUID) -> Contact:
        contact = await ContactRepository(session).get_for_update(contact_id)
        if contact is None:
            raise ContactNotFoundError(f"Contact {contact_id} not found")
        return contact

    async def _apply_event(
        self,
        session: AsyncSession,
        contact_id: UUID,
        event: ScoringEventType,
        description: Optional[str],
        related_type: Optional[str],
        related_id: Optional[str],
        extra_context: Dict[str, Any],
    ) -> Tuple[ScoreOutcome, Optional[StatusTransition]]:
        now = self._clock()
        contact = await self._lock_contact(session, contact_id)
        previous_score = contact.lead_score
        previous_status = ContactStatus(contact.status)

        snapshot = await self._rule_store.snapshot_for_contact(session, contact)
        if snapshot is None:
            logger.debug("No active scoring model for contact %s", contact_id)
            return self._unchanged(contact, event), None

        context = self._build_context(
            contact, event, description, related_type, related_id, extra_context
        )
        tracker = RuleApplicationRepository(session)
        ledger = ScoreHistoryRepository(session)

        applied: List[AppliedRule] = []
        skipped: List[SkippedRule] = []
        running = previous_score
        for rule in snapshot.rules_for(event.value):
            skip = await self._gate(tracker, contact_id, rule, context, now)
            if skip is not None:
                skipped.append(
                    SkippedRule(rule_id=rule.rule_id, rule_name=rule.name, reason=skip)
                )
                continue

            decay_at = (
                now + timedelta(days=rule.decay_days) if rule.decay_days else None
            )
            entry = await ledger.append(
                contact_id=contact_id,
                delta=rule.points,
                reason=f"Rule: {rule.name}",
                rule_id=rule.rule_id,
                event_type=event.value,
                description=description,
                related_type=related_type,
                related_id=related_id,
                previous_score=running,
                new_score=running + rule.points,
                created_at=now,
                decay_at=decay_at,
                decay_points=rule.effective_decay_points,
            )
            application = await tracker.record(
                contact_id, rule.rule_id, now, ledger_entry_id=entry.entry_id
            )
            running += rule.points
            applied.append(
                AppliedRule(
                    rule_id=rule.rule_id,
                    rule_name=rule.name,
                    points=rule.points,
                    occurrence_index=application.occurrence_index,
                    ledger_entry_id=entry.entry_id,
                    decay_at=decay_at,
                )
            )
            logger.info(
                "Applied rule '%s' (%+d) to contact %s for %s",
                rule.name,
                rule.points,
                contact_id,
                event.value,
            )

        if not applied:
            outcome = self._unchanged(contact, event, snapshot)
            outcome.skipped_rules = skipped
            return outcome, None

        transition = await self._settle(
            session, contact, running, snapshot, f"event:{event.value}", now
        )
        outcome = ScoreOutcome(
            contact_id=contact_id,
            event_type=event,
            model_id=snapshot.model_id,
            applied_rules=applied,
            skipped_rules=skipped,
            total_delta=running - previous_score,
            previous_score=previous_score,
            new_score=running,
            previous_status=previous_status,
            status=ContactStatus(contact.status),
            transitioned=transition is not None,
        )
        return outcome, transition

    async def _apply_adjustment(
        self, session: AsyncSession, contact_id: UUID, points: int, reason: str
    ) -> Tuple[ScoreOutcome, Optional[StatusTransition]]:
        now = self._clock()
        contact = await self._lock_contact(session, contact_id)
        previous_score = contact.lead_score
        previous_status = ContactStatus(contact.status)
        new_score = previous_score + points
        if not SCORE_MIN <= new_score <= SCORE_MAX:
            raise ValidationError(
                f"Adjustment would move the score of contact {contact_id} out of range"
            )

        await ScoreHistoryRepository(session).append(
            contact_id=contact_id,
            delta=points,
            reason=reason,
            event_type=ScoringEventType.CUSTOM.value,
            previous_score=previous_score,
            new_score=new_score,
            created_at=now,
        )
        snapshot = await self._rule_store.snapshot_for_contact(session, contact)
        transition = await self._settle(
            session, contact, new_score, snapshot, f"adjustment:{reason}", now
        )
        logger.info(
            "Manual adjustment %+d on contact %s (%s)", points, contact_id, reason
        )
        outcome = ScoreOutcome(
            contact_id=contact_id,
            event_type=ScoringEventType.CUSTOM,
            model_id=snapshot.model_id if snapshot else None,
            total_delta=points,
            previous_score=previous_score,
            new_score=new_score,
            previous_status=previous_status,
            status=ContactStatus(contact.status),
            transitioned=transition is not None,
        )
        return outcome, transition

    async def _apply_recalculation(
        self, session: AsyncSession, contact_id: UUID
    ) -> Tuple[ScoreOutcome, Optional[StatusTransition]]:
        now = self._clock()
        contact = await self._lock_contact(session, contact_id)
        previous_score = contact.lead_score
        previous_status = ContactStatus(contact.status)

        total = await ScoreHistoryRepository(session).sum_for_contact(contact_id)
        if total != previous_score:
            logger.warning(
                "Contact %s cached score %d differs from ledger sum %d",
                contact_id,
                previous_score,
                total,
            )
        snapshot = await self._rule_store.snapshot_for_contact(session, contact)
        transition = await self._settle(
            session, contact, total, snapshot, "recalculate", now
        )
        outcome = ScoreOutcome(
            contact_id=contact_id,
            model_id=snapshot.model_id if snapshot else None,
            total_delta=total - previous_score,
            previous_score=previous_score,
            new_score=total,
            previous_status=previous_status,
            status=ContactStatus(contact.status),
            transitioned=transition is not None,
        )
        return outcome, transition

    async def _apply_status_reset(
        self,
        session: AsyncSession,
        contact_id: UUID,
        target: ContactStatus,
        reason: str,
    ) -> Tuple[ScoreOutcome, Optional[StatusTransition]]:
        now = self._clock()
        contact = await self._lock_contact(session, contact_id)
        previous_status = ContactStatus(contact.status)
        transition = None

        if target != previous_status:
            model_id = await self._rule_store.resolve_model_id(session, contact)
            transition = StatusTransition(
                contact_id=contact_id,
                status_from=previous_status,
                status_to=target,
                score=contact.lead_score,
                reason=f"reset:{reason}",
                model_id=model_id,
            )
            contact.status = target.value
            await self._record_transition(session, transition, now)

        outcome = ScoreOutcome(
            contact_id=contact_id,
            model_id=transition.model_id if transition else None,
            previous_score=contact.lead_score,
            new_score=contact.lead_score,
            previous_status=previous_status,
            status=target,
            transitioned=transition is not None,
        )
        return outcome, transition

    async def _apply_decay(
        self, session: AsyncSession, contact_id: UUID
    ) -> Tuple[int, Optional[StatusTransition]]:
        now = self._clock()
        contact = await ContactRepository(session).get_for_update(contact_id)
        if contact is None:
            return 0, None

        ledger = ScoreHistoryRepository(session)
        running = contact.lead_score
        decayed = 0
        for entry in await ledger.find_due_for_contact(contact_id, now):
            if not await ledger.mark_decayed(entry.entry_id):
                continue
            points = entry.decay_points if entry.decay_points is not None else entry.delta
            await ledger.append(
                contact_id=contact_id,
                delta=-points,
                reason=DECAY_REASON,
                rule_id=entry.rule_id,
                event_type=entry.event_type,
                description=f"Decay of entry {entry.entry_id}",
                previous_score=running,
                new_score=running - points,
                created_at=now,
                reverses_entry_id=entry.entry_id,
            )
            running -= points
            decayed += 1

        if not decayed:
            return 0, None

        snapshot = await self._rule_store.snapshot_for_contact(session, contact)
        transition = await self._settle(
            session, contact, running, snapshot, DECAY_REASON, now
        )
        logger.info(
            "Decayed %d entr%s for contact %s, score now %d",
            decayed,
            "y" if decayed == 1 else "ies",
            contact_id,
            running,
        )
        return decayed, transition

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _gate(
        self,
        tracker: RuleApplicationRepository,
        contact_id: UUID,
        rule: RuleSnapshot,
        context: Dict[str, Any],
        now: datetime,
    ) -> Optional[SkipReason]:
        """Return why *rule* must not fire, or ``None`` when it may."""
        try:
            if not evaluate_conditions(rule.conditions, context):
                return SkipReason.conditions
        except InvalidConditionError as exc:
            logger.error(
                "Rule '%s' (%s) has an invalid condition: %s",
                rule.name,
                rule.rule_id,
                exc.detail,
            )
            return SkipReason.invalid_condition

        if rule.max_occurrences is not None:
            count = await tracker.count_for(contact_id, rule.rule_id)
            if count >= rule.max_occurrences:
                return SkipReason.max_occurrences

        if rule.cooldown_hours is not None:
            last = await tracker.last_applied_at(contact_id, rule.rule_id)
            if last is not None and now - last < timedelta(hours=rule.cooldown_hours):
                return SkipReason.cooldown

        return None

    async def _settle(
        self,
        session: AsyncSession,
        contact: Contact,
        new_score: int,
        snapshot: Optional[ModelSnapshot],
        reason: str,
        now: datetime,
    ) -> Optional[StatusTransition]:
        """Write the new score and advance the status if a threshold was crossed."""
        transition = None
        if snapshot is not None:
            transition = detect_transition(
                contact.contact_id,
                new_score,
                snapshot.qualified_threshold,
                snapshot.customer_threshold,
                contact.status,
                reason,
                snapshot.model_id,
            )
        status = transition.status_to.value if transition else contact.status
        await ContactRepository(session).update_score_state(
            contact, new_score, status, now
        )
        if transition is not None:
            await self._record_transition(session, transition, now)
        return transition

    async def _record_transition(
        self, session: AsyncSession, transition: StatusTransition, now: datetime
    ) -> None:
        await StatusChangeRepository(session).create(
            contact_id=transition.contact_id,
            status_from=transition.status_from.value,
            status_to=transition.status_to.value,
            score=transition.score,
            reason=transition.reason[:REASON_MAX_LENGTH],
            model_id=transition.model_id,
            changed_at=now,
        )

    @staticmethod
    def _build_context(
        contact: Contact,
        event: ScoringEventType,
        description: Optional[str],
        related_type: Optional[str],
        related_id: Optional[str],
        extra: Dict[str, Any],
    ) -> Dict[str, Any]:
        built_in = {
            "event_type": event.value,
            "description": description,
            "related_type": related_type,
            "related_id": related_id,
            "status": contact.status,
            "lead_score": contact.lead_score,
            "email": contact.email,
            "first_name": contact.first_name,
            "last_name": contact.last_name,
        }
        return {**extra, **built_in}

    @staticmethod
    def _unchanged(
        contact: Contact,
        event: Optional[ScoringEventType] = None,
        snapshot: Optional[ModelSnapshot] = None,
    ) -> ScoreOutcome:
        status = ContactStatus(contact.status)
        return ScoreOutcome(
            contact_id=contact.contact_id,
            event_type=event,
            model_id=snapshot.model_id if snapshot else None,
            previous_score=contact.lead_score,
            new_score=contact.lead_score,
            previous_status=status,
            status=status,
        )
