"""Audit trail logging.

Audit entries are ordinary structlog events emitted on the ``audit`` logger,
so deployments can route them to a separate sink (see ``shared.logging``).
Request-scoped details such as the acting user are picked up from structlog
context variables bound by the caller.

Entries describing a database mutation are queued on the session with
``audit_on_commit`` and only written once that transaction commits; a
rollback discards them.
"""

from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.orm import Session

from shared.config import get_settings

audit_logger = structlog.get_logger("audit")

_PENDING_KEY = "pending_audits"


def audit(action: str, resource: str, **context: Any) -> None:
    """Record an audit entry for ``action`` performed on ``resource``."""
    audit_logger.info(
        f"Audit: {action}",
        action=action,
        resource=resource,
        category="audit",
        environment=get_settings().environment,
        **context,
    )


def audit_on_commit(session: Session, action: str, resource: str, **context: Any) -> None:
    """Queue an audit entry to be recorded when ``session`` commits."""
    session.info.setdefault(_PENDING_KEY, []).append((action, resource, context))


@event.listens_for(Session, "after_commit")
def _flush_pending_audits(session: Session) -> None:
    for action, resource, context in session.info.pop(_PENDING_KEY, []):
        audit(action, resource, **context)


@event.listens_for(Session, "after_rollback")
def _discard_pending_audits(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)


def log_exception(exc: BaseException, **context: Any) -> None:
    """Log an exception with its class and message plus caller context."""
    structlog.get_logger("errors").error(
        f"Exception occurred: {exc}",
        exception_class=type(exc).__name__,
        exception_message=str(exc),
        category="exception",
        exc_info=exc,
        **context,
    )
