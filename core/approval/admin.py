from django.contrib import admin
from .models import (
    ApprovalChain,
    ApprovalChainStep,
    ApprovalProgress,
    ApprovalStepDecision,
    ApprovalDelegation,
)


class ApprovalChainStepInline(admin.TabularInline):
    """Inline admin for steps within a chain."""
    model = ApprovalChainStep
    extra = 1
    fields = ['order', 'name', 'approver_role', 'approver_user', 'required_approvals']
    ordering = ['order']


@admin.register(ApprovalChain)
class ApprovalChainAdmin(admin.ModelAdmin):
    """Admin for approval chains."""
    list_display = ['name', 'organization', 'type', 'priority', 'is_active', 'created_at']
    list_filter = ['organization', 'type', 'is_active']
    search_fields = ['name', 'description']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [ApprovalChainStepInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('organization', 'name', 'description', 'type', 'priority')
        }),
        ('Conditions', {
            'fields': ('min_amount', 'max_amount', 'min_days', 'categories'),
            'description': 'Leave a condition empty to not constrain on it'
        }),
        ('Status', {
            'fields': ('is_active',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


class ApprovalStepDecisionInline(admin.TabularInline):
    """Inline admin for the decision log."""
    model = ApprovalStepDecision
    extra = 0
    can_delete = False
    fields = ['step', 'decision', 'approved_by', 'on_behalf_of', 'comment', 'approved_at']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(ApprovalProgress)
class ApprovalProgressAdmin(admin.ModelAdmin):
    """Admin for approval progress (read-only state)."""
    list_display = [
        'id', 'organization', 'entity_type', 'entity_id', 'chain',
        'status', 'current_step', 'created_at'
    ]
    list_filter = ['organization', 'status', 'entity_type', 'created_at']
    search_fields = ['entity_id', 'chain__name']
    readonly_fields = [
        'chain', 'organization', 'entity_type', 'entity_id', 'submitted_by', 'current_step',
        'status', 'version', 'created_at', 'completed_at'
    ]
    inlines = [ApprovalStepDecisionInline]

    def has_add_permission(self, request):
        """Prevent manual creation - use ApprovalChainManager instead."""
        return False


@admin.register(ApprovalDelegation)
class ApprovalDelegationAdmin(admin.ModelAdmin):
    """Admin for delegations."""
    list_display = [
        'id', 'organization', 'delegator', 'delegatee', 'start_date',
        'end_date', 'is_active'
    ]
    list_filter = ['organization', 'is_active', 'start_date']
    search_fields = ['delegator__email', 'delegatee__email', 'reason']
    readonly_fields = ['created_at', 'deactivated_at']
