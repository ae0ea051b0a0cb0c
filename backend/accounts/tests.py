from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User
from accounts.views import LoginView, MeView, RefreshTokenView, RegisterView


class AuthApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

	def test_register_creates_customer_with_role_claim(self):
		request = self.factory.post('/api/auth/register/', {
			'username': 'asha',
			'password': 'password123',
			'email': 'asha@example.com',
			'role': 'admin',
		}, format='json')
		response = RegisterView.as_view()(request)

		self.assertEqual(response.status_code, 201)
		user = User.objects.get(username='asha')
		self.assertEqual(user.role, User.ROLE_CUSTOMER)
		access = AccessToken(response.data['tokens']['access'])
		self.assertEqual(access['role'], 'customer')

	def test_register_rejects_duplicate_email(self):
		User.objects.create_user(username='first', password='password123', email='dup@example.com')

		request = self.factory.post('/api/auth/register/', {
			'username': 'second',
			'password': 'password123',
			'email': 'dup@example.com',
		}, format='json')
		response = RegisterView.as_view()(request)

		self.assertEqual(response.status_code, 400)
		self.assertIn('email', response.data)

	def test_login_and_refresh(self):
		User.objects.create_user(username='fixer', password='tech12345', role='technician')

		request = self.factory.post('/api/auth/login/', {'username': 'fixer', 'password': 'tech12345'}, format='json')
		response = LoginView.as_view()(request)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['role'], 'technician')

		request = self.factory.post('/api/auth/refresh/', {'refresh': response.data['tokens']['refresh']}, format='json')
		refreshed = RefreshTokenView.as_view()(request)
		self.assertEqual(refreshed.status_code, 200)
		self.assertEqual(AccessToken(refreshed.data['access'])['role'], 'technician')

	def test_bad_credentials_and_bad_refresh(self):
		request = self.factory.post('/api/auth/login/', {'username': 'ghost', 'password': 'nope'}, format='json')
		self.assertEqual(LoginView.as_view()(request).status_code, 400)

		request = self.factory.post('/api/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
		self.assertEqual(RefreshTokenView.as_view()(request).status_code, 401)

		request = self.factory.post('/api/auth/refresh/', {}, format='json')
		self.assertEqual(RefreshTokenView.as_view()(request).status_code, 400)

	def test_me_requires_authentication(self):
		user = User.objects.create_user(username='asha', password='password123')

		request = self.factory.get('/api/auth/me/')
		self.assertEqual(MeView.as_view()(request).status_code, 401)

		request = self.factory.get('/api/auth/me/')
		force_authenticate(request, user=user)
		response = MeView.as_view()(request)
		self.assertEqual(response.data['user']['username'], 'asha')
