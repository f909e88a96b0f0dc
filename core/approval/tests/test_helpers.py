"""Test read helpers.

Tests current_approvers, can_decide, pending_for_user and history.
"""

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from core.approval.models import ApprovalDelegation
from core.approval.managers import ApprovalChainManager

from .factories import make_chain, make_user


class HelperFunctionsTest(TestCase):
    """Test manager read helpers."""

    def setUp(self):
        self.employee = make_user('employee@test.com')
        self.manager1 = make_user('manager1@test.com', role='manager')
        self.manager2 = make_user('manager2@test.com', role='manager')
        self.hr = make_user('hr@test.com', role='hr')
        self.deputy = make_user('deputy@test.com')

        self.chain = make_chain(steps=[
            {'approver': 'manager', 'required_approvals': 2},
            {'approver': 'hr'},
        ])
        self.progress = ApprovalChainManager.start_progress(
            self.chain, 'EXP-1', submitted_by=self.employee
        )

    def test_current_approvers(self):
        approvers = ApprovalChainManager.current_approvers(self.progress)
        self.assertEqual(set(approvers), {self.manager1, self.manager2})

        ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'approve')
        approvers = ApprovalChainManager.current_approvers(self.progress)
        self.assertEqual(list(approvers), [self.manager2])

    def test_current_approvers_excludes_submitter(self):
        progress = ApprovalChainManager.start_progress(
            self.chain, 'EXP-2', submitted_by=self.manager1
        )
        self.assertEqual(list(ApprovalChainManager.current_approvers(progress)), [self.manager2])

    def test_current_approvers_empty_when_resolved(self):
        progress = ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'reject')
        self.assertFalse(ApprovalChainManager.current_approvers(progress).exists())
        self.assertIsNone(ApprovalChainManager.current_step(progress))

    def test_can_decide(self):
        self.assertTrue(ApprovalChainManager.can_decide(self.progress, self.manager1))
        self.assertFalse(ApprovalChainManager.can_decide(self.progress, self.hr))
        self.assertFalse(ApprovalChainManager.can_decide(self.progress, self.employee))

        ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'approve')
        self.assertFalse(ApprovalChainManager.can_decide(self.progress, self.manager1))

    def test_pending_for_user(self):
        self.assertEqual(ApprovalChainManager.pending_for_user(self.manager1), [self.progress])
        self.assertEqual(ApprovalChainManager.pending_for_user(self.hr), [])

        ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'approve')
        ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager2, 'approve')

        self.assertEqual(ApprovalChainManager.pending_for_user(self.manager1), [])
        self.assertEqual(ApprovalChainManager.pending_for_user(self.hr), [self.progress])

    def test_pending_for_user_through_delegation(self):
        today = timezone.localdate()
        ApprovalDelegation.objects.create(
            delegator=self.manager1,
            delegatee=self.deputy,
            start_date=today,
            end_date=today + timedelta(days=7),
        )
        self.assertEqual(ApprovalChainManager.pending_for_user(self.deputy), [self.progress])
        self.assertTrue(ApprovalChainManager.can_decide(self.progress, self.deputy))

    def test_pending_for_user_with_specific_user_step(self):
        chain = make_chain('Assets', type='asset', steps=[{'approver': self.deputy}])
        progress = ApprovalChainManager.start_progress(chain, 'A-1', submitted_by=self.employee)

        self.assertEqual(ApprovalChainManager.pending_for_user(self.deputy), [progress])
        self.assertNotIn(progress, ApprovalChainManager.pending_for_user(self.manager1))

    def test_history_is_oldest_first(self):
        ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager2, 'approve')
        ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'approve')

        history = list(ApprovalChainManager.history(self.progress))
        self.assertEqual([d.approved_by for d in history], [self.manager2, self.manager1])
