"""Approval chain manager.

Selects a chain for a submitted entity, starts its progress record and
applies approve/reject decisions. Every mutation is a single transaction:
the progress row is locked with ``select_for_update`` and written with a
version compare-and-set, so concurrent decisions on one record serialize.
"""

import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F, Q
from django.contrib.auth import get_user_model
from django.utils import timezone

from core.user_accounts.models import UserRole

from . import exceptions
from .models import (
    ApprovalChain,
    ApprovalProgress,
    ApprovalStepDecision,
    ApprovalDelegation,
)
from .signals import dispatch_transition
from .validators import normalize_attributes, validate_conditions, validate_steps

logger = logging.getLogger(__name__)

User = get_user_model()


class ApprovalChainManager:
    """Central entry point for approval chains."""

    DECISIONS = {
        ApprovalStepDecision.DECISION_APPROVE,
        ApprovalStepDecision.DECISION_REJECT,
    }

    # ----------------------
    # Chain selection
    # ----------------------

    @classmethod
    def select_chain(cls, entity_type, attributes=None, organization=None):
        """Return the first active chain of ``entity_type`` whose conditions match.

        Args:
            entity_type: Chain type, e.g. "expense" or "leave"
            attributes: Dict with optional ``amount``, ``days`` and ``category``
            organization: Tenant whose chains are considered. Request-facing
                callers always pass it; None searches every tenant.

        Returns:
            ApprovalChain or None. None means no chain applies; the caller
            decides what that means, nothing is auto-approved here.
        """
        normalized = normalize_attributes(attributes)

        chains = ApprovalChain.objects.filter(
            type=entity_type,
            is_active=True
        )
        if organization is not None:
            chains = chains.filter(organization=organization)
        chains = chains.order_by("-priority", "created_at", "id")

        for chain in chains:
            if chain.matches(normalized):
                return chain
        return None

    @classmethod
    def validate_chain(cls, chain):
        """Raise ValidationError unless ``chain`` can run new approvals."""
        if not chain.is_active:
            raise exceptions.ValidationError(f"Approval chain '{chain.name}' is not active")

        validate_conditions(
            min_amount=chain.min_amount,
            max_amount=chain.max_amount,
            min_days=chain.min_days,
            categories=chain.categories,
        )
        validate_steps(step.as_definition() for step in chain.ordered_steps())

    # ----------------------
    # Starting progress
    # ----------------------

    @classmethod
    def start_progress(cls, chain, entity_id, entity_type=None, submitted_by=None):
        """Create the progress record for an entity entering ``chain``.

        Raises:
            ValidationError: chain inactive, empty or malformed, or the
                submitter belongs to another organization
            DuplicateProgressError: entity already has a pending approval
            PersistenceError: storage failure
        """
        entity_type = entity_type or chain.type
        if entity_type != chain.type:
            raise exceptions.ValidationError(
                f"Chain '{chain.name}' handles {chain.type}, not {entity_type}"
            )
        if submitted_by is not None and submitted_by.organization_id != chain.organization_id:
            raise exceptions.ValidationError(
                f"Chain '{chain.name}' belongs to another organization"
            )

        cls.validate_chain(chain)
        first_step = chain.ordered_steps()[0]
        entity_id = str(entity_id)

        try:
            with transaction.atomic():
                if ApprovalProgress.objects.filter(
                    organization_id=chain.organization_id,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    status=ApprovalProgress.STATUS_PENDING,
                ).exists():
                    raise exceptions.DuplicateProgressError(
                        f"{entity_type} #{entity_id} already has a pending approval"
                    )

                progress = ApprovalProgress.objects.create(
                    chain=chain,
                    organization_id=chain.organization_id,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    submitted_by=submitted_by,
                    current_step=first_step.order,
                    status=ApprovalProgress.STATUS_PENDING,
                )
                dispatch_transition("started", progress)
        except IntegrityError as exc:
            raise exceptions.DuplicateProgressError(
                f"{entity_type} #{entity_id} already has a pending approval"
            ) from exc
        except DatabaseError as exc:
            logger.error("Failed to start approval for %s #%s: %s", entity_type, entity_id, exc)
            raise exceptions.PersistenceError() from exc

        logger.info(
            "Started approval %s for %s #%s on chain '%s' at step %s",
            progress.pk, entity_type, entity_id, chain.name, progress.current_step,
        )
        return progress

    @classmethod
    def submit(cls, entity_type, entity_id, attributes=None, submitted_by=None, organization=None):
        """Select a chain for the entity and start its progress.

        The chain is chosen among ``organization``'s chains, defaulting to
        the submitter's organization.

        Raises:
            NoApplicableChainError: no active chain matches
        """
        if organization is None and submitted_by is not None:
            organization = submitted_by.organization
        chain = cls.select_chain(entity_type, attributes, organization=organization)
        if chain is None:
            raise exceptions.NoApplicableChainError(
                f"No active {entity_type} approval chain matches this request"
            )
        return cls.start_progress(
            chain,
            entity_id,
            entity_type=entity_type,
            submitted_by=submitted_by,
        )

    # ----------------------
    # Decisions
    # ----------------------

    @classmethod
    def record_decision(cls, progress_id, step_order, approver, decision, comment=None):
        """Record an approve/reject by ``approver`` on the current step.

        Args:
            progress_id: ApprovalProgress primary key
            step_order: Order of the step the approver believes is current
            approver: User making the decision
            decision: "approve" or "reject"
            comment: Optional comment

        Returns:
            The updated ApprovalProgress

        Raises:
            ApprovalProgress.DoesNotExist, ValidationError, NotPendingError,
            WrongStepError, UnauthorizedApproverError, DuplicateApprovalError,
            PersistenceError (ConcurrentDecisionError on a lost race)
        """
        if decision not in cls.DECISIONS:
            raise exceptions.ValidationError(f"Invalid decision: {decision}")

        try:
            with transaction.atomic():
                progress = cls._lock_progress(progress_id)
                transition, entry = cls._apply_decision(
                    progress, step_order, approver, decision, comment
                )
                dispatch_transition(transition, progress, decision=entry)
        except exceptions.PersistenceError:
            logger.warning(
                "Decision by %s on approval %s lost a concurrent update",
                approver.pk, progress_id,
            )
            raise
        except exceptions.ApprovalError as exc:
            logger.warning(
                "Refused %s by %s on approval %s: %s",
                decision, approver.pk, progress_id, exc,
            )
            raise
        except DatabaseError as exc:
            logger.error("Failed to record decision on approval %s: %s", progress_id, exc)
            raise exceptions.PersistenceError() from exc

        logger.info(
            "Approval %s: %s by %s at step %s -> %s",
            progress.pk, decision, approver.pk, step_order, transition,
        )
        return progress

    @classmethod
    def _lock_progress(cls, progress_id):
        return ApprovalProgress.objects.select_for_update().select_related(
            "chain"
        ).get(pk=progress_id)

    @classmethod
    def _apply_decision(cls, progress, step_order, approver, decision, comment):
        """Validate and apply one decision to a locked progress record.

        Returns:
            Tuple (transition, ApprovalStepDecision); transition is one of
            "recorded", "advanced", "approved", "rejected".
        """
        if progress.is_terminal:
            raise exceptions.NotPendingError(f"Approval is already {progress.status}")

        if step_order != progress.current_step:
            raise exceptions.WrongStepError(
                f"Step {step_order} is not current; approval is at step {progress.current_step}"
            )

        steps = progress.chain.ordered_steps()
        step = next((s for s in steps if s.order == step_order), None)
        if step is None:
            raise exceptions.ValidationError(
                f"Chain '{progress.chain.name}' has no step {step_order}"
            )

        on_behalf_of = cls._resolve_authority(progress, step, approver)

        acting = [approver.pk] + ([on_behalf_of.pk] if on_behalf_of else [])
        if progress.step_approvals.filter(step=step_order).filter(
            Q(approved_by__in=acting) | Q(on_behalf_of__in=acting)
        ).exists():
            raise exceptions.DuplicateApprovalError(
                f"{approver} already decided on step {step_order}"
            )

        now = timezone.now()
        entry = ApprovalStepDecision.objects.create(
            progress=progress,
            step=step_order,
            decision=decision,
            approved_by=approver,
            on_behalf_of=on_behalf_of,
            comment=comment,
            approved_at=now,
        )

        if decision == ApprovalStepDecision.DECISION_REJECT:
            transition = "rejected"
            progress.status = ApprovalProgress.STATUS_REJECTED
            progress.current_step = None
            progress.completed_at = now
        else:
            approvals = progress.approvals_for_step(step_order).count()
            if approvals < step.required_approvals:
                transition = "recorded"
            else:
                next_step = next((s for s in steps if s.order > step_order), None)
                if next_step is None:
                    transition = "approved"
                    progress.status = ApprovalProgress.STATUS_APPROVED
                    progress.current_step = None
                    progress.completed_at = now
                else:
                    transition = "advanced"
                    progress.current_step = next_step.order

        cls._save_progress(progress)
        return transition, entry

    @classmethod
    def _save_progress(cls, progress):
        """Write mutable progress fields if nobody else wrote since it was read."""
        updated = ApprovalProgress.objects.filter(
            pk=progress.pk,
            version=progress.version,
        ).update(
            status=progress.status,
            current_step=progress.current_step,
            completed_at=progress.completed_at,
            version=F("version") + 1,
        )
        if not updated:
            raise exceptions.ConcurrentDecisionError()
        progress.version += 1

    @classmethod
    def _resolve_authority(cls, progress, step, user):
        """Return None if ``user`` may act directly, or the delegator they act for.

        Raises:
            UnauthorizedApproverError
        """
        if progress.submitted_by_id is not None and progress.submitted_by_id == user.pk:
            raise exceptions.UnauthorizedApproverError("Submitters cannot decide on their own request")

        if step.is_satisfied_by(user):
            return None

        delegations = ApprovalDelegation.objects.in_effect().filter(
            organization_id=progress.organization_id,
            delegatee=user,
            delegatee__is_active=True,
        ).select_related("delegator")
        for delegation in delegations:
            delegator = delegation.delegator
            if delegator.pk == progress.submitted_by_id:
                continue
            if step.is_satisfied_by(delegator):
                return delegator

        raise exceptions.UnauthorizedApproverError(
            f"{user} is not an approver for step {step.order} ({step.approver})"
        )

    # ----------------------
    # Read helpers
    # ----------------------

    @classmethod
    def current_step(cls, progress):
        if progress.current_step is None:
            return None
        return progress.chain.steps.filter(order=progress.current_step).first()

    @classmethod
    def current_approvers(cls, progress):
        """Users who may still act directly on the current step.

        Returns:
            QuerySet of users (empty once the approval is resolved)
        """
        step = cls.current_step(progress)
        if progress.is_terminal or step is None:
            return User.objects.none()

        decided = set()
        for approved_by_id, on_behalf_of_id in progress.step_approvals.filter(
            step=step.order
        ).values_list("approved_by_id", "on_behalf_of_id"):
            decided.add(approved_by_id)
            if on_behalf_of_id is not None:
                decided.add(on_behalf_of_id)
        qs = step.eligible_users().exclude(pk__in=decided)
        if progress.submitted_by_id is not None:
            qs = qs.exclude(pk=progress.submitted_by_id)
        return qs

    @classmethod
    def can_decide(cls, progress, user):
        step = cls.current_step(progress)
        if progress.is_terminal or step is None:
            return False
        try:
            on_behalf_of = cls._resolve_authority(progress, step, user)
        except exceptions.UnauthorizedApproverError:
            return False

        acting = [user.pk] + ([on_behalf_of.pk] if on_behalf_of else [])
        return not progress.step_approvals.filter(step=step.order).filter(
            Q(approved_by__in=acting) | Q(on_behalf_of__in=acting)
        ).exists()

    @classmethod
    def can_view(cls, progress, user):
        """Whether ``user`` may read ``progress`` and its decision log.

        Admins and HR see every record of their organization; anyone else
        only what they submitted, decided on, or can decide on now.
        """
        if user.organization_id is None or user.organization_id != progress.organization_id:
            return False
        if user.role in (UserRole.ADMIN, UserRole.HR):
            return True
        if progress.submitted_by_id == user.pk:
            return True
        if progress.step_approvals.filter(
            Q(approved_by=user) | Q(on_behalf_of=user)
        ).exists():
            return True
        if cls.current_approvers(progress).filter(pk=user.pk).exists():
            return True
        return cls.can_decide(progress, user)

    @classmethod
    def pending_for_user(cls, user):
        """Pending approvals ``user`` can decide on right now.

        Returns:
            List of ApprovalProgress, newest first
        """
        if user.organization_id is None or not user.is_active:
            return []

        principals = [user] + [
            d.delegator for d in ApprovalDelegation.objects.in_effect().filter(
                organization_id=user.organization_id,
                delegatee=user,
            ).select_related("delegator")
        ]
        roles = sorted({p.role for p in principals if p.is_active})
        user_ids = [p.pk for p in principals if p.is_active]

        candidates = ApprovalProgress.objects.filter(
            Q(chain__steps__approver_role__in=roles) | Q(chain__steps__approver_user__in=user_ids),
            organization_id=user.organization_id,
            status=ApprovalProgress.STATUS_PENDING,
            chain__steps__order=F("current_step"),
        ).select_related("chain", "submitted_by").distinct()

        return [progress for progress in candidates if cls.can_decide(progress, user)]

    @staticmethod
    def history(progress):
        return progress.step_approvals.select_related(
            "approved_by", "on_behalf_of"
        ).order_by("approved_at", "id")
