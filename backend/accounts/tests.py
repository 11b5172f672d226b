from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework.test import APIClient

from .models import User


class AdminAuthTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		self.admin = User.objects.create_user(username='dispatcher', password='admin1234', role='admin')

	def test_login_returns_token_pair(self):
		response = self.client.post(
			'/api/auth/login/', {'username': 'dispatcher', 'password': 'admin1234'}, format='json'
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['role'], 'admin')
		self.assertIn('access', response.data['tokens'])

		refresh = self.client.post('/api/auth/refresh/', {'refresh': response.data['tokens']['refresh']}, format='json')
		self.assertEqual(refresh.status_code, 200)
		self.assertIn('access', refresh.data)

	def test_bad_credentials_are_rejected(self):
		response = self.client.post(
			'/api/auth/login/', {'username': 'dispatcher', 'password': 'wrong'}, format='json'
		)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation')

	def test_bad_refresh_token_is_unauthorized(self):
		response = self.client.post('/api/auth/refresh/', {'refresh': 'not-a-token'}, format='json')

		self.assertEqual(response.status_code, 401)

	def test_bearer_token_reaches_protected_api(self):
		login = self.client.post(
			'/api/auth/login/', {'username': 'dispatcher', 'password': 'admin1234'}, format='json'
		)
		self.client.credentials(HTTP_AUTHORIZATION='Bearer ' + login.data['tokens']['access'])

		response = self.client.get('/api/auth/me/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['username'], 'dispatcher')


class BootstrapAdminCommandTests(TestCase):
	def test_creates_super_admin_once(self):
		call_command('bootstrap_admin', username='root', password='s3cret-pass', stdout=StringIO())
		call_command('bootstrap_admin', username='root', password='other-pass', stdout=StringIO())

		user = User.objects.get(username='root')
		self.assertEqual(user.role, 'super_admin')
		self.assertTrue(user.is_superuser)
		self.assertTrue(user.check_password('s3cret-pass'))

	def test_reset_password(self):
		call_command('bootstrap_admin', username='root', password='s3cret-pass', stdout=StringIO())
		call_command('bootstrap_admin', username='root', password='new-pass', reset_password=True, stdout=StringIO())

		self.assertTrue(User.objects.get(username='root').check_password('new-pass'))

	def test_password_is_required(self):
		with self.assertRaises(CommandError):
			call_command('bootstrap_admin', username='root', password=None, stdout=StringIO())
