"""
Test suite for user_accounts app.
Tests the user model, roles, the role decorator and token authentication.
"""
from types import SimpleNamespace

from django.test import TestCase
from django.contrib.auth.models import AnonymousUser
from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.urls import reverse
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework.test import APIClient, APIRequestFactory, force_authenticate
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken

from core.user_accounts.decorators import require_roles
from core.user_accounts.models import Organization, UserRole


User = get_user_model()


class CustomUserManagerTest(TestCase):
    """Test CustomUserManager functionality"""

    def test_create_user_success(self):
        user = User.objects.create_user(
            email='Test@Example.com',
            name='Test User',
            password='TestPass123'
        )
        self.assertEqual(user.email, 'Test@example.com')
        self.assertEqual(user.role, UserRole.MEMBER)
        self.assertTrue(user.is_active)
        self.assertTrue(user.check_password('TestPass123'))

    def test_create_user_with_role(self):
        user = User.objects.create_user(
            email='manager@example.com',
            name='Manager',
            password='TestPass123',
            role='manager'
        )
        self.assertTrue(user.has_role(UserRole.MANAGER))
        self.assertFalse(user.is_admin())

    def test_create_user_requires_email_and_name(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', name='No Email')
        with self.assertRaises(ValueError):
            User.objects.create_user(email='noname@example.com', name='')

    def test_create_user_with_unknown_role(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='ceo@example.com', name='CEO', role='ceo')

    def test_create_superuser(self):
        user = User.objects.create_superuser(
            email='admin@example.com',
            name='Admin',
            password='AdminPass123'
        )
        self.assertTrue(user.is_admin())
        self.assertTrue(user.is_staff)
        self.assertTrue(user.has_perm('approval.add_approvalchain'))


class CustomUserModelTest(TestCase):
    """Test CustomUser model functionality"""

    def setUp(self):
        self.admin = User.objects.create_superuser(
            email='admin@example.com',
            name='Admin',
            password='AdminPass123'
        )
        self.member = User.objects.create_user(
            email='member@example.com',
            name='Member',
            password='MemberPass123'
        )

    def test_str(self):
        self.assertEqual(str(self.member), 'Member (member@example.com)')

    def test_member_has_no_admin_permissions(self):
        self.assertFalse(self.member.is_staff)
        self.assertFalse(self.member.has_module_perms('approval'))

    def test_inactive_admin_has_no_permissions(self):
        self.admin.is_active = False
        self.assertFalse(self.admin.has_perm('approval.add_approvalchain'))

    def test_cannot_delete_last_admin(self):
        with self.assertRaises(PermissionDenied):
            self.admin.delete()
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())

    def test_can_delete_admin_when_another_exists(self):
        User.objects.create_superuser(email='admin2@example.com', name='Admin 2', password='x' * 12)
        self.admin.delete()
        self.assertFalse(User.objects.filter(pk=self.admin.pk).exists())

    def test_last_admin_is_counted_per_organization(self):
        acme = Organization.objects.create(name='Acme')
        globex = Organization.objects.create(name='Globex')
        acme_admin = User.objects.create_superuser(
            email='admin@acme.test', name='Acme Admin', password='x' * 12, organization=acme
        )
        User.objects.create_superuser(
            email='admin@globex.test', name='Globex Admin', password='x' * 12, organization=globex
        )

        with self.assertRaises(PermissionDenied):
            acme_admin.delete()

    def test_member_can_be_deleted(self):
        self.member.delete()
        self.assertFalse(User.objects.filter(pk=self.member.pk).exists())


@api_view(['GET', 'POST'])
@require_roles('admin', 'hr', methods=['POST'])
def guarded_view(request):
    return Response({'ok': True})


class RequireRolesDecoratorTest(TestCase):
    """Test the require_roles decorator"""

    def setUp(self):
        self.factory = APIRequestFactory()
        self.hr = User.objects.create_user(email='hr@example.com', name='HR', role='hr')
        self.member = User.objects.create_user(email='member@example.com', name='Member')

    def test_allowed_role(self):
        request = self.factory.post('/guarded/', {}, format='json')
        force_authenticate(request, user=self.hr)
        response = guarded_view(request)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_forbidden_role(self):
        request = self.factory.post('/guarded/', {}, format='json')
        force_authenticate(request, user=self.member)
        response = guarded_view(request)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['status'], 'error')
        self.assertIn('admin, hr', response.data['message'])

    def test_unguarded_method_passes_through(self):
        request = self.factory.get('/guarded/')
        force_authenticate(request, user=self.member)
        response = guarded_view(request)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_unauthenticated(self):
        view = require_roles('admin')(lambda request: Response())
        response = view(SimpleNamespace(method='POST', user=AnonymousUser()))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_required_roles_attribute(self):
        view = require_roles('admin')(lambda request: Response())
        self.assertEqual(view.required_roles, ('admin',))


class TokenAuthenticationTest(TestCase):
    """Test JWT access to the approval API"""

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(
            email='member@example.com',
            name='Member',
            password='MemberPass123'
        )

    def test_bearer_token_authenticates(self):
        token = RefreshToken.for_user(self.user).access_token
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get(reverse('core:approval:chain-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_invalid_token_is_rejected(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')

        response = self.client.get(reverse('core:approval:chain-list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['status'], 'error')

    def test_inactive_user_token_is_rejected(self):
        token = RefreshToken.for_user(self.user).access_token
        self.user.is_active = False
        self.user.save()
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get(reverse('core:approval:chain-list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
