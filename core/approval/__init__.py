"""
Approval chains for wrkspace requests (expenses, leave, assets, ...)

Usage:
    from core.approval.managers import ApprovalChainManager

    # Pick the chain for an entity and start its approval
    progress = ApprovalChainManager.submit(
        'expense', expense_id, {'amount': 5000, 'category': 'travel'},
        submitted_by=user,
    )

    # Record a decision on the current step
    ApprovalChainManager.record_decision(
        progress.pk, progress.current_step, manager, 'approve', comment='OK'
    )
"""

# Don't import models/managers at module level to avoid AppRegistryNotReady errors
# Import them directly from their modules when needed:
# from core.approval.managers import ApprovalChainManager
# from core.approval.models import ApprovalChain, ApprovalProgress, etc.
