import logging
from typing import Optional, Protocol

from leadscore.core.cache import CacheService
from leadscore.core.config import settings
from leadscore.services.threshold_evaluator import StatusTransition

logger = logging.getLogger(__name__)


class StatusChangeNotifier(Protocol):
    """Receives a contact's status transition once it has been committed."""

    async def notify(self, transition: StatusTransition) -> None: ...


class StreamStatusChangeNotifier:
    """Log every transition and append it to a Redis stream.

    Delivery is best-effort: when Redis is unreachable the transition is
    still logged and the committed score state is unaffected.
    """

    def __init__(
        self, cache: Optional[CacheService] = None, stream: Optional[str] = None
    ) -> None:
        self._cache = cache or CacheService(None)
        self._stream = stream or settings.STATUS_CHANGE_STREAM

    async def notify(self, transition: StatusTransition) -> None:
        logger.info(
            "Contact %s status %s -> %s at score %d (%s)",
            transition.contact_id,
            transition.status_from.value,
            transition.status_to.value,
            transition.score,
            transition.reason,
        )
        await self._cache.xadd(
            self._stream,
            {
                "contact_id": transition.contact_id,
                "status_from": transition.status_from.value,
                "status_to": transition.status_to.value,
                "score": transition.score,
                "reason": transition.reason,
                "model_id": transition.model_id,
            },
        )
