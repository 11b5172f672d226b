from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from drivers.models import Driver


@override_settings(REDIS_URL=None)
class HealthCheckTests(TestCase):
	def setUp(self):
		self.client = APIClient()

	def test_all_checks_pass(self):
		Driver.objects.create(
			name='Ravi', phone='9000000001', vehicle_type='bike', vehicle_number='DL-1001', channel_name='abc',
		)

		response = self.client.get('/health/')

		self.assertEqual(response.status_code, 200)
		checks = response.data['checks']
		self.assertEqual(response.data['status'], 'healthy')
		self.assertEqual(checks['order_store']['detail'], {'pending_orders': 0, 'connected_drivers': 1})
		self.assertEqual(checks['event_delivery']['detail'], 'InMemoryChannelLayer')
		self.assertEqual(checks['redis']['detail'], 'not configured')
		self.assertTrue(checks['stats_task']['ok'])

	def test_store_failure_is_unavailable(self):
		with patch('dispatch_backend.views.Order.objects.filter', side_effect=DatabaseError('database is locked')):
			with self.assertLogs('dispatch_backend.views', level='WARNING'):
				response = self.client.get('/health/')

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['status'], 'unhealthy')
		self.assertFalse(response.data['checks']['order_store']['ok'])
		self.assertTrue(response.data['checks']['event_delivery']['ok'])
