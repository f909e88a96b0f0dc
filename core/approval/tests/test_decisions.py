"""Decision precondition tests.

Every refused decision must leave the progress record and its log
unchanged.
"""

from django.test import TestCase

from core.approval import exceptions
from core.approval.models import ApprovalProgress
from core.approval.managers import ApprovalChainManager

from .factories import make_chain, make_user


class DecisionErrorsTest(TestCase):

    def setUp(self):
        self.employee = make_user('employee@test.com')
        self.manager1 = make_user('manager1@test.com', role='manager')
        self.manager2 = make_user('manager2@test.com', role='manager')
        self.member = make_user('member@test.com')
        self.chain = make_chain(steps=[
            {'approver': 'manager', 'required_approvals': 2},
            {'approver': 'hr'},
        ])
        self.progress = ApprovalChainManager.start_progress(
            self.chain, 'EXP-9', submitted_by=self.employee
        )

    def assertUnchanged(self):
        progress = ApprovalProgress.objects.get(pk=self.progress.pk)
        self.assertEqual(progress.status, ApprovalProgress.STATUS_PENDING)
        self.assertEqual(progress.current_step, 1)
        return progress

    def test_invalid_decision(self):
        with self.assertRaises(exceptions.ValidationError):
            ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'maybe')

        progress = self.assertUnchanged()
        self.assertEqual(progress.version, 0)
        self.assertFalse(progress.step_approvals.exists())

    def test_wrong_step(self):
        with self.assertRaises(exceptions.WrongStepError):
            ApprovalChainManager.record_decision(self.progress.pk, 2, self.manager1, 'approve')
        self.assertUnchanged()

    def test_unauthorized_role(self):
        with self.assertRaises(exceptions.UnauthorizedApproverError):
            ApprovalChainManager.record_decision(self.progress.pk, 1, self.member, 'approve')
        self.assertFalse(self.assertUnchanged().step_approvals.exists())

    def test_inactive_user_cannot_decide(self):
        self.manager1.is_active = False
        self.manager1.save()

        with self.assertRaises(exceptions.UnauthorizedApproverError):
            ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'approve')

    def test_submitter_cannot_decide_own_request(self):
        chain = make_chain('Manager expenses', steps=[{'approver': 'manager'}])
        progress = ApprovalChainManager.start_progress(chain, 'EXP-10', submitted_by=self.manager1)

        with self.assertRaises(exceptions.UnauthorizedApproverError):
            ApprovalChainManager.record_decision(progress.pk, 1, self.manager1, 'approve')

    def test_duplicate_approval(self):
        ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'approve')

        with self.assertRaises(exceptions.DuplicateApprovalError):
            ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'approve')

        progress = self.assertUnchanged()
        self.assertEqual(progress.approvals_for_step(1).count(), 1)
        self.assertEqual(progress.version, 1)

    def test_cannot_reject_after_approving(self):
        ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'approve')

        with self.assertRaises(exceptions.DuplicateApprovalError):
            ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'reject')
        self.assertUnchanged()

    def test_decision_after_rejection(self):
        ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager1, 'reject')

        with self.assertRaises(exceptions.NotPendingError):
            ApprovalChainManager.record_decision(self.progress.pk, 1, self.manager2, 'approve')

        progress = ApprovalProgress.objects.get(pk=self.progress.pk)
        self.assertEqual(progress.status, ApprovalProgress.STATUS_REJECTED)
        self.assertEqual(progress.step_approvals.count(), 1)

    def test_unknown_progress(self):
        with self.assertRaises(ApprovalProgress.DoesNotExist):
            ApprovalChainManager.record_decision(999999, 1, self.manager1, 'approve')

    def test_refusals_are_logged(self):
        with self.assertLogs('core.approval.managers', level='WARNING') as logs:
            with self.assertRaises(exceptions.WrongStepError):
                ApprovalChainManager.record_decision(self.progress.pk, 2, self.manager1, 'approve')

        self.assertIn('Refused approve', logs.output[0])

    def test_errors_carry_http_status(self):
        self.assertEqual(exceptions.ValidationError.http_status, 400)
        self.assertEqual(exceptions.DuplicateProgressError.http_status, 409)
        self.assertEqual(exceptions.NotPendingError.http_status, 409)
        self.assertEqual(exceptions.WrongStepError.http_status, 409)
        self.assertEqual(exceptions.UnauthorizedApproverError.http_status, 403)
        self.assertEqual(exceptions.DuplicateApprovalError.http_status, 409)
        self.assertEqual(exceptions.ConcurrentDecisionError.http_status, 503)
