from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from leadscore.core.constants import STATUS_RANK
from leadscore.schemas.common import ContactStatus


@dataclass(frozen=True)
class StatusTransition:
    """A status change caused by crossing a model threshold (or a reset)."""

    contact_id: UUID
    status_from: ContactStatus
    status_to: ContactStatus
    score: int
    reason: str
    model_id: Optional[UUID] = None


def _rank(status: ContactStatus | str) -> int:
    return STATUS_RANK[ContactStatus(status).value]


def evaluate_status(
    current_score: int,
    qualified_threshold: int,
    customer_threshold: int,
    current_status: ContactStatus | str,
) -> ContactStatus:
    """Return the status the contact should hold for *current_score*.

    Statuses only advance (``new → qualified → customer``); a score that
    crosses both thresholds at once jumps straight to ``customer``, and a
    falling score never moves a contact backwards.
    """
    current = ContactStatus(current_status)
    if current_score >= customer_threshold:
        earned = ContactStatus.customer
    elif current_score >= qualified_threshold:
        earned = ContactStatus.qualified
    else:
        earned = ContactStatus.new
    return earned if _rank(earned) > _rank(current) else current


def detect_transition(
    contact_id: UUID,
    current_score: int,
    qualified_threshold: int,
    customer_threshold: int,
    current_status: ContactStatus | str,
    reason: str,
    model_id: Optional[UUID] = None,
) -> Optional[StatusTransition]:
    """Wrap :func:`evaluate_status`; ``None`` when the status is unchanged."""
    current = ContactStatus(current_status)
    target = evaluate_status(
        current_score, qualified_threshold, customer_threshold, current
    )
    if target == current:
        return None
    return StatusTransition(
        contact_id=contact_id,
        status_from=current,
        status_to=target,
        score=current_score,
        reason=reason,
        model_id=model_id,
    )
