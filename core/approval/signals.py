"""Approval transition signals.

Sent only after the surrounding transaction commits. Receivers run through
``send_robust``; a failing receiver is logged and never affects the
transition that triggered it.

All signals are sent with ``progress`` and ``transition``; decision-driven
signals also carry ``decision`` (the ApprovalStepDecision just recorded).
"""

import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

progress_started = Signal()
progress_advanced = Signal()
progress_approved = Signal()
progress_rejected = Signal()

TRANSITION_SIGNALS = {
    "started": progress_started,
    "advanced": progress_advanced,
    "approved": progress_approved,
    "rejected": progress_rejected,
}


def dispatch_transition(transition, progress, **kwargs):
    """Queue the signal for ``transition`` to fire on commit.

    Transitions without a signal (a partial approval on a step) are ignored.
    """
    signal = TRANSITION_SIGNALS.get(transition)
    if signal is None:
        return
    transaction.on_commit(
        lambda: _send(signal, transition, progress, **kwargs)
    )


def _send(signal, transition, progress, **kwargs):
    results = signal.send_robust(
        sender=progress.__class__,
        progress=progress,
        transition=transition,
        **kwargs
    )
    for receiver, result in results:
        if isinstance(result, Exception):
            logger.error(
                "Approval notification receiver %s failed for progress %s (%s): %s",
                getattr(receiver, "__qualname__", receiver),
                progress.pk,
                transition,
                result,
            )
