"""Test concurrent decisions.

Interleavings are forced by handing the manager a stale snapshot of the
progress record in place of the locked read.
"""

from unittest import mock

from django.test import TestCase

from core.approval import exceptions
from core.approval.models import ApprovalProgress
from core.approval.managers import ApprovalChainManager

from .factories import make_chain, make_user


class ConcurrencyTest(TestCase):
    """Test that a stale writer never lands a decision."""

    def setUp(self):
        self.employee = make_user('employee@test.com')
        self.approvers = [
            make_user(f'approver{i}@test.com', role='manager')
            for i in range(1, 4)
        ]
        self.hr = make_user('hr@test.com', role='hr')

    def snapshot(self, progress):
        return ApprovalProgress.objects.get(pk=progress.pk)

    def test_stale_approval_cannot_exceed_required(self):
        chain = make_chain(steps=[{'approver': 'manager', 'required_approvals': 2}])
        progress = ApprovalChainManager.start_progress(chain, 1, submitted_by=self.employee)
        stale = self.snapshot(progress)

        ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[0], 'approve')
        ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[1], 'approve')

        with mock.patch.object(ApprovalChainManager, '_lock_progress', return_value=stale):
            with self.assertRaises(exceptions.ConcurrentDecisionError):
                ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[2], 'approve')

        progress.refresh_from_db()
        self.assertEqual(progress.status, ApprovalProgress.STATUS_APPROVED)
        self.assertEqual(progress.approvals_for_step(1).count(), 2)
        self.assertFalse(progress.step_approvals.filter(approved_by=self.approvers[2]).exists())

    def test_first_writer_wins(self):
        """Two approvers read the same version; only the first write lands."""
        chain = make_chain(steps=[{'approver': 'manager'}, {'approver': 'hr'}])
        progress = ApprovalChainManager.start_progress(chain, 1, submitted_by=self.employee)
        first, second = self.snapshot(progress), self.snapshot(progress)

        with mock.patch.object(ApprovalChainManager, '_lock_progress', side_effect=[first, second]):
            ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[0], 'approve')
            with self.assertRaises(exceptions.PersistenceError):
                ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[1], 'reject')

        progress.refresh_from_db()
        self.assertEqual(progress.status, ApprovalProgress.STATUS_PENDING)
        self.assertEqual(progress.current_step, 2)
        self.assertEqual(progress.version, 1)
        self.assertEqual(progress.step_approvals.count(), 1)

    def test_loser_can_retry_against_fresh_state(self):
        chain = make_chain(steps=[{'approver': 'manager', 'required_approvals': 2}])
        progress = ApprovalChainManager.start_progress(chain, 1, submitted_by=self.employee)
        stale = self.snapshot(progress)

        ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[0], 'approve')

        with mock.patch.object(ApprovalChainManager, '_lock_progress', return_value=stale):
            with self.assertRaises(exceptions.ConcurrentDecisionError):
                ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[1], 'approve')

        progress = ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[1], 'approve')
        self.assertEqual(progress.status, ApprovalProgress.STATUS_APPROVED)
        self.assertEqual(progress.version, 2)

    def test_lost_race_is_logged(self):
        chain = make_chain()
        progress = ApprovalChainManager.start_progress(chain, 1, submitted_by=self.employee)
        stale = self.snapshot(progress)
        ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[0], 'approve')

        with self.assertLogs('core.approval.managers', level='WARNING') as logs:
            with mock.patch.object(ApprovalChainManager, '_lock_progress', return_value=stale):
                with self.assertRaises(exceptions.ConcurrentDecisionError):
                    ApprovalChainManager.record_decision(progress.pk, 1, self.approvers[1], 'approve')

        self.assertIn('lost a concurrent update', logs.output[0])
