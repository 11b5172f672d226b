from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import User
from customers.models import Customer
from drivers import services
from drivers.models import Driver
from realtime.bus import NotificationBus
from services.driver_availability import (
	driver_connected,
	driver_disconnected,
	set_availability,
	set_blocked,
	update_location,
)
from services.order_management import (
	ConflictError,
	DriverNotAvailableError,
	DriverNotFoundError,
	assign_driver,
	create_order,
)
from vehicles.models import Vehicle


def make_driver(phone, vehicle_number, **fields):
	defaults = {
		'name': 'Driver %s' % vehicle_number,
		'vehicle_type': 'bike',
		'verification_status': 'verified',
	}
	defaults.update(fields)
	return Driver.objects.create(phone=phone, vehicle_number=vehicle_number, **defaults)


class DriverRegistryTests(TestCase):
	def setUp(self):
		self.driver = make_driver('9000000001', 'DL-1001', is_available=True)

	def test_update_availability_bumps_version(self):
		self.assertTrue(services.update_availability(self.driver.id, False))

		self.driver.refresh_from_db()
		self.assertFalse(self.driver.is_available)
		self.assertEqual(self.driver.availability_version, 1)

	def test_stale_version_is_not_written(self):
		services.update_availability(self.driver.id, False)

		self.assertFalse(services.update_availability(self.driver.id, True, expected_version=0))
		self.driver.refresh_from_db()
		self.assertFalse(self.driver.is_available)

	def test_require_eligible_rejects_unverified_driver(self):
		Driver.objects.filter(pk=self.driver.pk).update(verification_status='under_review')

		self.assertFalse(services.update_availability(self.driver.id, False, require_eligible=True))

	def test_assignable_drivers_sorted_by_distance(self):
		near = make_driver(
			'9000000002', 'DL-1002', is_available=True,
			current_latitude=Decimal('28.614000'), current_longitude=Decimal('77.209500'),
		)
		far = make_driver(
			'9000000003', 'DL-1003', is_available=True,
			current_latitude=Decimal('28.630000'), current_longitude=Decimal('77.220000'),
		)
		make_driver(
			'9000000004', 'DL-1004', is_available=True,
			current_latitude=Decimal('28.900000'), current_longitude=Decimal('77.500000'),
		)
		make_driver(
			'9000000005', 'DL-1005', is_available=True, is_blocked=True,
			current_latitude=Decimal('28.613900'), current_longitude=Decimal('77.209000'),
		)

		candidates = services.find_assignable_drivers('bike', 28.6139, 77.2090, radius_meters=5000)

		self.assertEqual([driver for driver, _ in candidates], [near, far])
		self.assertLess(candidates[0][1], candidates[1][1])

	def test_assignable_without_point_lists_all_eligible(self):
		make_driver('9000000002', 'DL-1002', is_available=False)
		make_driver('9000000003', 'DL-1003', is_available=True, vehicle_type='car')

		candidates = services.find_assignable_drivers('bike')

		self.assertEqual(candidates, [(self.driver, None)])


class DriverPresenceTests(TestCase):
	def setUp(self):
		self.driver = make_driver('9000000001', 'DL-1001')
		self.customer = Customer.objects.create(name='Asha', phone='9000000000')
		Vehicle.objects.create(vehicle_type='bike', name='Bike', base_fare=20, price_per_km=5)

	def hold_order(self):
		order = create_order(
			self.customer.id,
			'bike',
			{
				'pickup': {'address': 'A', 'coordinates': [77.2, 28.6]},
				'dropoff': {'address': 'B', 'coordinates': [77.3, 28.7]},
			},
			{'total': '40.00'},
		).order
		assign_driver(order.id, self.driver.id)
		return order

	def test_connect_records_handle_and_goes_available(self):
		driver = driver_connected(self.driver.id, 'specific.channel!abc')

		self.assertTrue(driver.is_available)
		self.assertEqual(driver.channel_name, 'specific.channel!abc')
		self.assertIsNotNone(driver.connected_at)

	def test_connect_unknown_driver_is_not_found(self):
		with self.assertRaises(DriverNotFoundError):
			driver_connected(9999, 'specific.channel!abc')

	def test_connect_blocked_driver_stays_unavailable(self):
		Driver.objects.filter(pk=self.driver.pk).update(is_blocked=True)

		driver = driver_connected(self.driver.id, 'specific.channel!abc')

		self.assertFalse(driver.is_available)
		self.assertTrue(driver.is_connected)

	def test_reconnect_during_active_order_stays_unavailable(self):
		Driver.objects.filter(pk=self.driver.pk).update(is_available=True)
		self.hold_order()

		driver = driver_connected(self.driver.id, 'specific.channel!abc')

		self.assertFalse(driver.is_available)

	def test_disconnect_clears_handle_and_availability(self):
		driver_connected(self.driver.id, 'specific.channel!abc')

		driver = driver_disconnected('specific.channel!abc')

		self.assertFalse(driver.is_available)
		self.assertIsNone(driver.channel_name)
		self.assertIsNone(driver.connected_at)

	def test_stale_disconnect_changes_nothing(self):
		driver_connected(self.driver.id, 'specific.channel!old')
		driver_connected(self.driver.id, 'specific.channel!new')

		self.assertIsNone(driver_disconnected('specific.channel!old'))

		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_available)
		self.assertEqual(self.driver.channel_name, 'specific.channel!new')

	def test_disconnect_keeps_active_order(self):
		Driver.objects.filter(pk=self.driver.pk).update(is_available=True)
		order = self.hold_order()
		Driver.objects.filter(pk=self.driver.pk).update(channel_name='specific.channel!abc')

		with self.assertLogs('services.driver_availability.presence', level='WARNING'):
			driver_disconnected('specific.channel!abc')

		order.refresh_from_db()
		self.assertEqual(order.status, 'assigned')

	def test_connect_retries_lost_version_race(self):
		real_update = services.update_availability
		calls = []

		def lose_first(*args, **kwargs):
			calls.append(kwargs.get('expected_version'))
			if len(calls) == 1:
				# A concurrent writer bumps the version first
				real_update(self.driver.id, False)
			return real_update(*args, **kwargs)

		with patch('drivers.services.update_availability', side_effect=lose_first):
			driver = driver_connected(self.driver.id, 'specific.channel!abc')

		self.assertEqual(calls, [0, 1])
		self.assertTrue(driver.is_available)

	@override_settings(DISPATCH_PRESENCE_CAS_RETRIES=2)
	def test_connect_gives_up_after_retries(self):
		with patch('drivers.services.update_availability', return_value=False):
			with self.assertRaises(ConflictError):
				driver_connected(self.driver.id, 'specific.channel!abc')

	def test_manual_toggle_is_idempotent(self):
		first = set_availability(self.driver.id, True)
		second = set_availability(self.driver.id, True)

		self.assertTrue(second.is_available)
		self.assertEqual(first.availability_version, second.availability_version)

	def test_manual_toggle_on_refused_for_blocked_or_busy_driver(self):
		Driver.objects.filter(pk=self.driver.pk).update(is_blocked=True)
		with self.assertRaises(DriverNotAvailableError):
			set_availability(self.driver.id, True)

		Driver.objects.filter(pk=self.driver.pk).update(is_blocked=False, is_available=True)
		self.hold_order()
		with self.assertRaises(DriverNotAvailableError) as ctx:
			set_availability(self.driver.id, True)
		self.assertEqual(ctx.exception.message, 'Driver has an active order')

	def test_block_forces_unavailable(self):
		set_availability(self.driver.id, True)

		driver = set_blocked(self.driver.id, True)

		self.assertTrue(driver.is_blocked)
		self.assertFalse(driver.is_available)
		self.assertFalse(set_blocked(self.driver.id, False).is_blocked)

	def test_location_update_persists(self):
		driver = update_location(self.driver.id, Decimal('28.700000'), Decimal('77.100000'))

		self.assertEqual(driver.current_latitude, Decimal('28.700000'))
		self.assertIsNotNone(driver.last_location_update)

	@patch.object(NotificationBus, 'publish', return_value=True)
	def test_connect_publishes_online_and_availability(self, mock_publish):
		with self.captureOnCommitCallbacks(execute=True):
			driver_connected(self.driver.id, 'specific.channel!abc')

		events = [call.args[1] for call in mock_publish.call_args_list]
		self.assertIn('driver.online', events)
		self.assertIn('driver.availability_changed', events)
		payload = next(
			call.args[2] for call in mock_publish.call_args_list if call.args[1] == 'driver.availability_changed'
		)
		self.assertTrue(payload['is_available'])
		self.assertEqual(payload['data']['id'], self.driver.id)


class DriverApiTests(TestCase):
	def setUp(self):
		self.admin = User.objects.create_user(username='dispatcher', password='admin1234', role='admin')
		self.driver = make_driver(
			'9000000001', 'DL-1001',
			current_latitude=Decimal('28.613900'), current_longitude=Decimal('77.209000'),
		)
		self.client = APIClient()
		self.client.force_authenticate(user=self.admin)

	def test_list_drivers_filters_by_status(self):
		make_driver('9000000002', 'DL-1002', is_available=True)

		response = self.client.get('/api/drivers/', {'status': 'available'})

		self.assertEqual(response.status_code, 200)
		self.assertEqual([d['vehicle_number'] for d in response.data['data']], ['DL-1002'])

	def test_availability_toggle(self):
		response = self.client.patch(
			'/api/drivers/%d/availability/' % self.driver.id, {'is_available': True}, format='json'
		)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['data']['is_available'])

	def test_availability_toggle_conflict_for_blocked_driver(self):
		Driver.objects.filter(pk=self.driver.pk).update(is_blocked=True)

		response = self.client.patch(
			'/api/drivers/%d/availability/' % self.driver.id, {'is_available': True}, format='json'
		)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['message'], 'Driver is blocked')

	def test_block_and_location(self):
		response = self.client.patch('/api/drivers/%d/block/' % self.driver.id, {'is_blocked': True}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['data']['is_blocked'])

		response = self.client.patch(
			'/api/drivers/%d/location/' % self.driver.id,
			{'latitude': '28.700000', 'longitude': '77.100000'},
			format='json',
		)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['current_latitude'], '28.700000')

	def test_unknown_driver_returns_404(self):
		response = self.client.patch('/api/drivers/9999/block/', {'is_blocked': True}, format='json')

		self.assertEqual(response.status_code, 404)

	def test_assignable_drivers_include_distance(self):
		Driver.objects.filter(pk=self.driver.pk).update(is_available=True)

		response = self.client.get(
			'/api/drivers/assignable/',
			{'vehicle_type': 'bike', 'latitude': 28.6140, 'longitude': 77.2091},
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 1)
		self.assertLess(response.data['data'][0]['distance'], 50)

	def test_assignable_requires_both_coordinates(self):
		response = self.client.get('/api/drivers/assignable/', {'latitude': 28.6})

		self.assertEqual(response.status_code, 400)
