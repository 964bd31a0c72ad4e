"""
Best-effort side effects.

Emails and other follow-ups whose failure must never change the outcome of
the request that triggered them go through ``run_best_effort``. The result is
logged and handed back to the caller, who may record it but must not raise.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationResult:
    name: str
    ok: bool
    error: Optional[str] = None


def run_best_effort(name: str, func: Callable[..., object], *args, **kwargs) -> NotificationResult:
    """
    Call ``func`` and convert any outcome into a NotificationResult.

    Returning False (the mailer's "not sent") counts as a failure, as does raising.
    """
    try:
        outcome = func(*args, **kwargs)
    except Exception as e:
        logger.error(f"[Notify] {name} failed: {e}", exc_info=True)
        return NotificationResult(name=name, ok=False, error=str(e))

    if outcome is False:
        logger.warning(f"[Notify] {name} was not delivered")
        return NotificationResult(name=name, ok=False, error="not delivered")

    logger.info(f"[Notify] {name} delivered")
    return NotificationResult(name=name, ok=True)
