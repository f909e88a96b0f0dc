"""Approval chain models.

An ApprovalChain is admin-authored configuration: ordered steps plus optional
conditions deciding which entities it applies to. An ApprovalProgress tracks
one submitted entity through its chain; its decision log is append-only.
"""

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.conf import settings

from core.user_accounts.models import UserRole

from .approvers import RoleApprover, UserApprover


class ApprovalChain(models.Model):
    """Ordered approval steps for one kind of entity within an organization.

    Chains of the same type and organization are tried in ``priority`` order
    (highest first), then oldest first; the first whose conditions match is used.
    """

    TYPE_LEAVE = "leave"
    TYPE_EXPENSE = "expense"
    TYPE_ASSET = "asset"
    TYPE_DOCUMENT = "document"
    TYPE_OTHER = "other"
    TYPE_CHOICES = [
        (TYPE_LEAVE, "Leave"),
        (TYPE_EXPENSE, "Expense"),
        (TYPE_ASSET, "Asset"),
        (TYPE_DOCUMENT, "Document"),
        (TYPE_OTHER, "Other"),
    ]

    organization = models.ForeignKey(
        "user_accounts.Organization",
        on_delete=models.PROTECT,
        related_name="approval_chains"
    )
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True, default='')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    priority = models.IntegerField(
        default=0,
        help_text="Higher priority chains are checked first"
    )

    # Conditions; a null/empty value leaves that dimension unconstrained
    min_amount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    max_amount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    min_days = models.PositiveIntegerField(null=True, blank=True)
    categories = models.JSONField(default=list, blank=True)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "approval_chain"
        ordering = ["type", "-priority", "created_at", "id"]
        indexes = [
            models.Index(fields=["organization", "type", "is_active"], name="approval_ch_organiz_4c1a2e_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.type}, {'active' if self.is_active else 'inactive'})"

    @property
    def conditions(self):
        conditions = {}
        if self.min_amount is not None:
            conditions["min_amount"] = self.min_amount
        if self.max_amount is not None:
            conditions["max_amount"] = self.max_amount
        if self.min_days is not None:
            conditions["min_days"] = self.min_days
        if self.categories:
            conditions["categories"] = list(self.categories)
        return conditions

    def matches(self, attributes):
        """Check normalized entity attributes against this chain's conditions.

        Ranges are inclusive. An attribute the entity does not supply is not
        checked against the corresponding condition.
        """
        amount = attributes.get("amount")
        days = attributes.get("days")
        category = attributes.get("category")

        if amount is not None:
            if self.min_amount is not None and amount < self.min_amount:
                return False
            if self.max_amount is not None and amount > self.max_amount:
                return False
        if days is not None and self.min_days is not None and days < self.min_days:
            return False
        if category is not None and self.categories and category not in self.categories:
            return False
        return True

    def ordered_steps(self):
        return list(self.steps.order_by("order"))


class ApprovalChainStep(models.Model):
    """One stage of a chain.

    Exactly one of ``approver_role`` / ``approver_user`` is set; read it
    through ``approver``.
    """

    chain = models.ForeignKey(
        ApprovalChain,
        related_name="steps",
        on_delete=models.CASCADE
    )
    order = models.PositiveIntegerField(help_text="Steps run in ascending order")
    name = models.CharField(max_length=120, blank=True, default='')

    approver_role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        null=True,
        blank=True
    )
    approver_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="approval_steps"
    )
    required_approvals = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "approval_chain_step"
        ordering = ["chain", "order"]
        constraints = [
            models.UniqueConstraint(fields=["chain", "order"], name="uniq_step_order_per_chain"),
            models.CheckConstraint(
                condition=(
                    Q(approver_role__isnull=False, approver_user__isnull=True)
                    | Q(approver_role__isnull=True, approver_user__isnull=False)
                ),
                name="step_has_exactly_one_approver",
            ),
            models.CheckConstraint(
                condition=Q(required_approvals__gte=1),
                name="step_requires_an_approval",
            ),
        ]

    def __str__(self):
        label = self.name or f"Step {self.order}"
        return f"{self.chain.name}#{self.order} {label} ({self.approver})"

    @property
    def approver(self):
        if self.approver_user_id is not None:
            return UserApprover(self.approver_user_id)
        return RoleApprover(self.approver_role)

    def is_satisfied_by(self, user):
        if user.organization_id != self.chain.organization_id:
            return False
        return self.approver.matches(user)

    def eligible_users(self):
        from django.contrib.auth import get_user_model
        User = get_user_model()

        approver = self.approver
        users = User.objects.filter(organization_id=self.chain.organization_id, is_active=True)
        if isinstance(approver, UserApprover):
            return users.filter(pk=approver.user_id)
        return users.filter(role=approver.role)

    def as_definition(self):
        return {
            "order": self.order,
            "approver_role": self.approver_role,
            "approver_user": self.approver_user_id,
            "required_approvals": self.required_approvals,
        }


class ApprovalProgress(models.Model):
    """Live state of one entity moving through its chain."""

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]
    TERMINAL_STATUSES = frozenset({STATUS_APPROVED, STATUS_REJECTED})

    chain = models.ForeignKey(
        ApprovalChain,
        on_delete=models.PROTECT,
        related_name="progress_records"
    )
    organization = models.ForeignKey(
        "user_accounts.Organization",
        on_delete=models.PROTECT,
        related_name="approval_progress",
        help_text="Copied from the chain; scopes entity ids per tenant"
    )
    entity_type = models.CharField(max_length=20, choices=ApprovalChain.TYPE_CHOICES)
    entity_id = models.CharField(max_length=64)
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="submitted_approvals"
    )

    current_step = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Order of the step awaiting decisions; null once resolved"
    )
    status = models.CharField(
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING
    )
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "approval_progress"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["organization", "entity_type", "entity_id"], name="approval_pr_organiz_9b7d31_idx"),
            models.Index(fields=["status", "current_step"], name="approval_pr_status_5e2f8a_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "entity_type", "entity_id"],
                condition=Q(status="pending"),
                name="uniq_pending_progress_per_entity",
            ),
        ]

    def __str__(self):
        return f"Approval of {self.entity_type} #{self.entity_id} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def approvals_for_step(self, step_order):
        return self.step_approvals.filter(
            step=step_order,
            decision=ApprovalStepDecision.DECISION_APPROVE
        )


class ApprovalStepDecision(models.Model):
    """Append-only log entry for one approve/reject on a progress record."""

    DECISION_APPROVE = "approve"
    DECISION_REJECT = "reject"
    DECISION_CHOICES = [
        (DECISION_APPROVE, "Approve"),
        (DECISION_REJECT, "Reject"),
    ]

    progress = models.ForeignKey(
        ApprovalProgress,
        related_name="step_approvals",
        on_delete=models.CASCADE
    )
    step = models.PositiveIntegerField()
    decision = models.CharField(max_length=10, choices=DECISION_CHOICES)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="approval_decisions",
        on_delete=models.PROTECT
    )
    on_behalf_of = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        related_name="delegated_approval_decisions",
        on_delete=models.PROTECT,
        help_text="Set when the decision was made under a delegation"
    )
    comment = models.TextField(null=True, blank=True)
    approved_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "approval_step_decision"
        ordering = ["approved_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["progress", "step", "approved_by"],
                name="uniq_decision_per_approver_step",
            ),
        ]

    def __str__(self):
        return f"{self.decision} by {self.approved_by} on step {self.step} of {self.progress}"

    @property
    def acting_for(self):
        """User whose approval authority was exercised."""
        return self.on_behalf_of or self.approved_by


class ApprovalDelegationQuerySet(models.QuerySet):

    def in_effect(self, day=None):
        day = day or timezone.localdate()
        return self.filter(is_active=True, start_date__lte=day, end_date__gte=day)


class ApprovalDelegation(models.Model):
    """Lets ``delegatee`` decide on behalf of ``delegator`` for a date window."""

    organization = models.ForeignKey(
        "user_accounts.Organization",
        on_delete=models.CASCADE,
        related_name="approval_delegations"
    )
    delegator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="delegations_given",
        on_delete=models.CASCADE
    )
    delegatee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="delegations_received",
        on_delete=models.CASCADE
    )
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.TextField(blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)

    objects = ApprovalDelegationQuerySet.as_manager()

    class Meta:
        db_table = "approval_delegation"
        ordering = ["-start_date", "-id"]
        indexes = [
            models.Index(fields=["is_active", "delegatee"], name="approval_de_is_acti_3d8c6b_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_date__gte=models.F("start_date")),
                name="delegation_window_not_inverted",
            ),
        ]

    def __str__(self):
        return f"Delegation: {self.delegator} -> {self.delegatee} ({'active' if self.is_active else 'inactive'})"

    def save(self, *args, **kwargs):
        if self.organization_id is None:
            self.organization_id = self.delegator.organization_id
        super().save(*args, **kwargs)

    def is_in_effect(self, day=None):
        if not self.is_active:
            return False
        day = day or timezone.localdate()
        return self.start_date <= day <= self.end_date

    def deactivate(self):
        if self.is_active:
            self.is_active = False
            self.deactivated_at = timezone.now()
            self.save(update_fields=["is_active", "deactivated_at"])
