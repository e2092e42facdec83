"""API-layer dependency functions.

Re-exports all dependency factories from ``leadscore.dependencies`` so
that endpoint modules only need to import from ``leadscore.api.deps``.
"""

from leadscore.dependencies import (
    # Service factories
    get_scoring_engine,
    get_decay_scheduler,
    get_scoring_admin_service,
    # Collaborators
    get_cache_service,
    get_rule_store,
    get_status_notifier,
    # Redis
    get_redis_client,
)

__all__ = [
    "get_scoring_engine",
    "get_decay_scheduler",
    "get_scoring_admin_service",
    "get_cache_service",
    "get_rule_store",
    "get_status_notifier",
    "get_redis_client",
]
