"""Default receivers for approval transitions.

Works out who has to hear about a transition (the submitter, and whoever can
act next) and hands that to the notification channel. Delivery itself
(email, push) is outside this app; the channel here is the log.
"""

import logging

from django.dispatch import receiver

from .managers import ApprovalChainManager
from .signals import (
    progress_started,
    progress_advanced,
    progress_approved,
    progress_rejected,
)

logger = logging.getLogger(__name__)


def recipients_for(progress, transition):
    """Return (submitter, next_approvers) for a transition.

    ``next_approvers`` is empty once the approval is resolved.
    """
    submitter = progress.submitted_by
    if transition in ("approved", "rejected"):
        return submitter, []
    return submitter, list(ApprovalChainManager.current_approvers(progress))


@receiver(progress_started, dispatch_uid="approval_notify_started")
@receiver(progress_advanced, dispatch_uid="approval_notify_advanced")
@receiver(progress_approved, dispatch_uid="approval_notify_approved")
@receiver(progress_rejected, dispatch_uid="approval_notify_rejected")
def notify_transition(sender, progress, transition, **kwargs):
    submitter, approvers = recipients_for(progress, transition)

    if submitter is not None and transition != "started":
        logger.info(
            "Notify submitter %s: %s #%s is %s",
            submitter.email, progress.entity_type, progress.entity_id, transition,
        )
    for approver in approvers:
        logger.info(
            "Notify approver %s: %s #%s awaits step %s",
            approver.email, progress.entity_type, progress.entity_id, progress.current_step,
        )
