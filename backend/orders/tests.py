import threading
from decimal import Decimal
from unittest.mock import patch

from django.db import OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import User
from customers.models import Customer
from drivers.models import Driver
from realtime.bus import NotificationBus
from services.order_management import (
	accept_order,
	assign_driver,
	cancel_order,
	create_order,
	delete_order,
	reject_order,
	update_order,
	update_status,
	ConflictError,
	CustomerBlockedError,
	CustomerNotFoundError,
	DriverNotAvailableError,
	DriverNotFoundError,
	InvalidRequestError,
	InvalidStatusError,
	OrderStateConflictError,
	VehicleTypeNotFoundError,
)
from vehicles.models import Vehicle
from .models import Order
from .tasks import broadcast_dashboard_stats_task

LOCATIONS = {
	'pickup': {'address': 'Connaught Place', 'coordinates': [77.2090, 28.6139]},
	'dropoff': {'address': 'India Gate', 'coordinates': [77.2295, 28.6129]},
}
FARE = {'base_fare': '20.00', 'distance_charge': '35.50', 'total': '55.50'}


class DispatchFixtureMixin:
	def setUp(self):
		self.admin = User.objects.create_user(username='dispatcher', password='admin1234', role='admin')
		self.customer = Customer.objects.create(name='Asha', phone='9000000000')
		Vehicle.objects.create(vehicle_type='bike', name='Bike', base_fare=20, price_per_km=5)
		self.driver = self.make_driver('9000000001', 'DL-1001')

	def make_driver(self, phone, vehicle_number, **fields):
		defaults = {
			'name': 'Driver %s' % vehicle_number,
			'vehicle_type': 'bike',
			'is_available': True,
			'verification_status': 'verified',
			'current_latitude': Decimal('28.613900'),
			'current_longitude': Decimal('77.209000'),
		}
		defaults.update(fields)
		return Driver.objects.create(phone=phone, vehicle_number=vehicle_number, **defaults)

	def make_order(self):
		return create_order(self.customer.id, 'bike', LOCATIONS, FARE).order


class OrderCreateTests(DispatchFixtureMixin, TestCase):
	def test_create_order_starts_pending_without_driver(self):
		result = create_order(self.customer.id, 'bike', LOCATIONS, FARE, notes='Fragile')

		order = result.order
		self.assertTrue(result.success)
		self.assertEqual(order.status, 'pending')
		self.assertIsNone(order.driver)
		self.assertTrue(order.booking_id.startswith('BK'))
		self.assertEqual(order.fare_total, Decimal('55.50'))
		self.assertEqual(order.time_charge, Decimal('0'))
		self.assertEqual(order.locations['pickup']['coordinates'], [77.209, 28.6139])
		self.assertEqual(order.locations['dropoff']['type'], 'dropoff')

	def test_unknown_customer_is_not_found(self):
		with self.assertRaises(CustomerNotFoundError):
			create_order(9999, 'bike', LOCATIONS, FARE)

	def test_blocked_customer_is_conflict(self):
		self.customer.is_blocked = True
		self.customer.save()

		with self.assertRaises(CustomerBlockedError) as ctx:
			create_order(self.customer.id, 'bike', LOCATIONS, FARE)
		self.assertIsInstance(ctx.exception, ConflictError)

	def test_inactive_vehicle_type_is_not_found(self):
		Vehicle.objects.create(vehicle_type='truck', name='Truck', base_fare=90, price_per_km=20, is_active=False)

		with self.assertRaises(VehicleTypeNotFoundError):
			create_order(self.customer.id, 'truck', LOCATIONS, FARE)

	def test_missing_fare_total_is_validation(self):
		with self.assertRaises(InvalidRequestError):
			create_order(self.customer.id, 'bike', LOCATIONS, {'base_fare': '20.00'})
		self.assertEqual(Order.objects.count(), 0)

	def test_malformed_locations_is_validation(self):
		locations = {'pickup': LOCATIONS['pickup'], 'dropoff': {'address': 'India Gate'}}

		with self.assertRaises(InvalidRequestError):
			create_order(self.customer.id, 'bike', locations, FARE)

	def test_booking_id_collision_is_retried(self):
		existing = self.make_order()

		with patch(
			'services.order_management.order_lifecycle.generate_booking_id',
			side_effect=[existing.booking_id, 'BKRETRY0001'],
		):
			order = self.make_order()

		self.assertEqual(order.booking_id, 'BKRETRY0001')
		self.assertEqual(Order.objects.count(), 2)


class OrderAssignTests(DispatchFixtureMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.order = self.make_order()

	def test_assign_sets_driver_and_marks_driver_unavailable(self):
		version = self.driver.availability_version

		result = assign_driver(self.order.id, self.driver.id, assigned_by_id=self.admin.id)

		self.driver.refresh_from_db()
		self.assertEqual(result.order.status, 'assigned')
		self.assertEqual(result.order.driver, self.driver)
		self.assertEqual(result.order.assigned_by, self.admin)
		self.assertIsNotNone(result.order.assigned_at)
		self.assertFalse(self.driver.is_available)
		self.assertEqual(self.driver.availability_version, version + 1)

	def test_second_assign_is_conflict_naming_status(self):
		other = self.make_driver('9000000002', 'DL-1002')
		assign_driver(self.order.id, self.driver.id)

		with self.assertRaises(OrderStateConflictError) as ctx:
			assign_driver(self.order.id, other.id)

		self.assertIn('assigned', ctx.exception.message)
		other.refresh_from_db()
		self.assertTrue(other.is_available)

	def test_missing_driver_is_not_found(self):
		with self.assertRaises(DriverNotFoundError):
			assign_driver(self.order.id, 9999)

	def test_ineligible_drivers_are_conflict(self):
		cases = [
			({'is_available': False}, 'Driver is not available'),
			({'verification_status': 'pending'}, 'Driver is not verified'),
			({'is_blocked': True}, 'Driver is blocked'),
			({'is_active': False}, 'Driver is not active'),
		]
		for index, (fields, message) in enumerate(cases):
			driver = self.make_driver('91000000%02d' % index, 'DL-20%02d' % index, **fields)
			with self.subTest(fields=fields):
				with self.assertRaises(DriverNotAvailableError) as ctx:
					assign_driver(self.order.id, driver.id)
				self.assertEqual(ctx.exception.message, message)

		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'pending')

	def test_lost_order_race_is_conflict_and_keeps_driver_available(self):
		rival = self.make_driver('9000000002', 'DL-1002')

		def rival_wins(driver):
			# Another admin's assignment commits between our read and our write
			Order.objects.filter(pk=self.order.pk).update(status='assigned', driver=rival)

		with patch('services.order_management.order_lifecycle._ensure_assignable', side_effect=rival_wins):
			with self.assertRaises(OrderStateConflictError) as ctx:
				assign_driver(self.order.id, self.driver.id)

		self.assertIn('assigned', ctx.exception.message)
		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_available)

	def test_lost_driver_race_rolls_back_order_claim(self):
		with patch('drivers.services.update_availability', return_value=False):
			with self.assertRaises(DriverNotAvailableError):
				assign_driver(self.order.id, self.driver.id)

		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'pending')
		self.assertIsNone(self.order.driver_id)
		self.assertIsNone(self.order.assigned_at)


class OrderStatusTests(DispatchFixtureMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.order = self.make_order()

	def test_invalid_status_is_validation_and_leaves_order(self):
		with self.assertRaises(InvalidStatusError) as ctx:
			update_status(self.order.id, 'teleported')

		self.assertEqual(ctx.exception.message, 'Invalid status')
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'pending')

	def test_active_status_without_driver_is_conflict(self):
		with self.assertRaises(OrderStateConflictError):
			update_status(self.order.id, 'accepted')

	def test_back_to_pending_with_driver_is_conflict(self):
		assign_driver(self.order.id, self.driver.id)

		with self.assertRaises(OrderStateConflictError):
			update_status(self.order.id, 'pending')

	def test_accepted_stamps_started_at_once(self):
		assign_driver(self.order.id, self.driver.id)
		started_at = update_status(self.order.id, 'accepted').order.started_at

		update_status(self.order.id, 'picked_up')
		order = update_status(self.order.id, 'accepted').order

		self.assertIsNotNone(started_at)
		self.assertEqual(order.started_at, started_at)

	def test_complete_releases_driver(self):
		assign_driver(self.order.id, self.driver.id)
		for status in ('accepted', 'picked_up', 'in_progress'):
			update_status(self.order.id, status)

		result = update_status(self.order.id, 'completed')

		self.driver.refresh_from_db()
		self.assertEqual(result.order.status, 'completed')
		self.assertIsNotNone(result.order.completed_at)
		self.assertEqual(result.order.driver, self.driver)
		self.assertEqual(result.extra, {'previous_status': 'in_progress', 'new_status': 'completed'})
		self.assertTrue(self.driver.is_available)

	def test_status_cancelled_sets_default_reason(self):
		order = update_status(self.order.id, 'cancelled').order

		self.assertEqual(order.status, 'cancelled')
		self.assertTrue(order.cancellation_reason)
		self.assertIsNotNone(order.cancelled_at)

	def test_terminal_order_is_conflict(self):
		update_status(self.order.id, 'cancelled')

		with self.assertRaises(OrderStateConflictError):
			update_status(self.order.id, 'pending')

	def test_complete_releases_driver_blocked_mid_trip(self):
		assign_driver(self.order.id, self.driver.id)
		Driver.objects.filter(pk=self.driver.pk).update(is_blocked=True)

		update_status(self.order.id, 'completed')

		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_available)

	def test_cancel_releases_driver_blocked_mid_trip(self):
		assign_driver(self.order.id, self.driver.id)
		Driver.objects.filter(pk=self.driver.pk).update(is_blocked=True, is_active=False)

		cancel_order(self.order.id, 'x')

		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_available)


class OrderCancelUpdateDeleteTests(DispatchFixtureMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.order = self.make_order()

	def test_cancel_assigned_order_releases_driver(self):
		assign_driver(self.order.id, self.driver.id)

		result = cancel_order(self.order.id, 'Customer changed plans')

		self.driver.refresh_from_db()
		self.assertEqual(result.order.status, 'cancelled')
		self.assertEqual(result.order.cancellation_reason, 'Customer changed plans')
		self.assertTrue(result.extra['was_assigned'])
		self.assertTrue(self.driver.is_available)

	def test_cancel_blank_reason_uses_default(self):
		order = cancel_order(self.order.id, '   ').order

		self.assertEqual(order.cancellation_reason, 'Cancelled by admin')

	def test_cancel_completed_order_is_conflict(self):
		assign_driver(self.order.id, self.driver.id)
		completed_at = update_status(self.order.id, 'completed').order.completed_at

		with self.assertRaises(OrderStateConflictError) as ctx:
			cancel_order(self.order.id, 'too late')

		self.assertEqual(ctx.exception.message, 'Cannot cancel a completed or already cancelled order')
		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'completed')
		self.assertEqual(self.order.completed_at, completed_at)

	def test_update_overlays_fare_fields(self):
		result = update_order(self.order.id, fare={'time_charge': '4.50'}, notes='Call on arrival')

		order = result.order
		self.assertEqual(order.time_charge, Decimal('4.50'))
		self.assertEqual(order.base_fare, Decimal('20.00'))
		self.assertEqual(order.fare_total, Decimal('55.50'))
		self.assertEqual(order.notes, 'Call on arrival')
		self.assertEqual(result.extra['updated_fields'], ['notes', 'time_charge'])

	def test_update_unknown_vehicle_type_is_not_found(self):
		with self.assertRaises(VehicleTypeNotFoundError):
			update_order(self.order.id, vehicle_type='rocket')

	def test_update_terminal_order_is_conflict(self):
		cancel_order(self.order.id)

		with self.assertRaises(OrderStateConflictError) as ctx:
			update_order(self.order.id, notes='late edit')
		self.assertEqual(ctx.exception.message, 'Cannot update a completed or cancelled order')

	def test_delete_does_not_release_driver(self):
		assign_driver(self.order.id, self.driver.id)

		result = delete_order(self.order.id)

		self.driver.refresh_from_db()
		self.assertEqual(result.extra['booking_id'], self.order.booking_id)
		self.assertFalse(Order.objects.filter(pk=self.order.pk).exists())
		self.assertFalse(self.driver.is_available)


class DriverResponseTests(DispatchFixtureMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.order = self.make_order()
		assign_driver(self.order.id, self.driver.id, assigned_by_id=self.admin.id)

	def test_assigned_driver_accepts(self):
		result = accept_order(self.order.id, self.driver.id)

		self.assertEqual(result.order.status, 'accepted')
		self.assertIsNotNone(result.order.started_at)
		self.assertEqual(result.extra['previous_status'], 'assigned')

	def test_other_driver_cannot_accept_or_reject(self):
		other = self.make_driver('9000000002', 'DL-1002')

		with self.assertRaises(OrderStateConflictError) as ctx:
			accept_order(self.order.id, other.id)
		self.assertEqual(ctx.exception.message, 'Order is not assigned to this driver')

		with self.assertRaises(OrderStateConflictError):
			reject_order(self.order.id, other.id, 'not mine')

		self.order.refresh_from_db()
		self.assertEqual(self.order.status, 'assigned')

	def test_accept_twice_is_conflict(self):
		accept_order(self.order.id, self.driver.id)

		with self.assertRaises(OrderStateConflictError) as ctx:
			accept_order(self.order.id, self.driver.id)
		self.assertIn('accepted', ctx.exception.message)

	def test_reject_returns_order_to_pending_and_frees_driver(self):
		accept_order(self.order.id, self.driver.id)

		result = reject_order(self.order.id, self.driver.id, 'Vehicle broke down')

		self.driver.refresh_from_db()
		order = result.order
		self.assertEqual(order.status, 'pending')
		self.assertIsNone(order.driver_id)
		self.assertIsNone(order.assigned_by_id)
		self.assertIsNone(order.assigned_at)
		self.assertIsNone(order.started_at)
		self.assertEqual(result.extra, {'previous_status': 'accepted', 'driver_id': self.driver.id})
		self.assertTrue(self.driver.is_available)

		other = self.make_driver('9000000002', 'DL-1002')
		self.assertEqual(assign_driver(self.order.id, other.id).order.driver, other)

	def test_reject_after_pickup_is_conflict(self):
		update_status(self.order.id, 'picked_up')

		with self.assertRaises(OrderStateConflictError):
			reject_order(self.order.id, self.driver.id)

		self.driver.refresh_from_db()
		self.assertFalse(self.driver.is_available)


class ConcurrentAssignTests(DispatchFixtureMixin, TransactionTestCase):
	RACERS = 6

	@patch.object(NotificationBus, 'publish', return_value=True)
	def test_one_assignment_wins_the_rest_conflict(self, mock_publish):
		order = self.make_order()
		drivers = [self.driver] + [
			self.make_driver('92000000%02d' % index, 'DL-30%02d' % index) for index in range(1, self.RACERS)
		]
		barrier = threading.Barrier(self.RACERS)
		outcomes = []
		lock = threading.Lock()

		def attempt(driver):
			try:
				barrier.wait()
				try:
					assign_driver(order.id, driver.id)
					outcome = 'ok'
				except ConflictError:
					outcome = 'conflict'
				except Exception as exc:
					outcome = type(exc).__name__
				with lock:
					outcomes.append(outcome)
			finally:
				connection.close()

		threads = [threading.Thread(target=attempt, args=(driver,)) for driver in drivers]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join()

		self.assertEqual(sorted(outcomes), ['conflict'] * (self.RACERS - 1) + ['ok'])
		self.assertEqual(Driver.objects.filter(is_available=False).count(), 1)
		order.refresh_from_db()
		self.assertEqual(order.status, 'assigned')
		self.assertFalse(order.driver.is_available)


@patch.object(NotificationBus, 'publish', return_value=True)
class OrderEventTests(DispatchFixtureMixin, TestCase):
	def published(self, mock_publish, event):
		return [call.args[0].group_name for call in mock_publish.call_args_list if call.args[1] == event]

	def test_events_wait_for_commit(self, mock_publish):
		with self.captureOnCommitCallbacks(execute=False) as callbacks:
			self.make_order()

		self.assertTrue(callbacks)
		mock_publish.assert_not_called()

	def test_assign_fans_out_to_admins_driver_booking_and_broadcast(self, mock_publish):
		order = self.make_order()
		with self.captureOnCommitCallbacks(execute=True):
			assign_driver(order.id, self.driver.id)

		self.assertCountEqual(
			self.published(mock_publish, 'order.assigned'),
			['admins', 'broadcast', 'booking_%s' % order.booking_id, 'driver_%s' % self.driver.id],
		)
		self.assertIn('admins', self.published(mock_publish, 'driver.availability_changed'))
		self.assertEqual(self.published(mock_publish, 'dashboard.stats_update'), ['admins'])

	def test_status_change_payload_carries_previous_status(self, mock_publish):
		order = self.make_order()
		assign_driver(order.id, self.driver.id)
		with self.captureOnCommitCallbacks(execute=True):
			update_status(order.id, 'accepted')

		payload = next(
			call.args[2] for call in mock_publish.call_args_list if call.args[1] == 'order.status_changed'
		)
		self.assertEqual(payload['previous_status'], 'assigned')
		self.assertEqual(payload['new_status'], 'accepted')
		self.assertEqual(payload['data']['status'], 'accepted')
		self.assertIn('timestamp', payload)

	def test_failed_command_publishes_nothing(self, mock_publish):
		order = self.make_order()
		with self.captureOnCommitCallbacks(execute=True) as callbacks:
			with self.assertRaises(InvalidStatusError):
				update_status(order.id, 'bogus')

		self.assertEqual(callbacks, [])

	def test_complete_publishes_order_completed(self, mock_publish):
		order = self.make_order()
		assign_driver(order.id, self.driver.id)
		with self.captureOnCommitCallbacks(execute=True):
			update_status(order.id, 'completed')

		self.assertIn('booking_%s' % order.booking_id, self.published(mock_publish, 'order.completed'))
		self.assertIn('admins', self.published(mock_publish, 'order.status_changed'))

	def test_reject_publishes_order_rejected(self, mock_publish):
		order = self.make_order()
		assign_driver(order.id, self.driver.id)
		with self.captureOnCommitCallbacks(execute=True):
			reject_order(order.id, self.driver.id, 'Too far')

		payload = next(call.args[2] for call in mock_publish.call_args_list if call.args[1] == 'order.rejected')
		self.assertEqual(payload['reason'], 'Too far')
		self.assertEqual(payload['driver_id'], self.driver.id)
		self.assertEqual(payload['data']['status'], 'pending')
		self.assertIn('driver.availability_changed', [call.args[1] for call in mock_publish.call_args_list])

	def test_delete_publishes_order_deleted(self, mock_publish):
		order = self.make_order()
		with self.captureOnCommitCallbacks(execute=True):
			delete_order(order.id)

		payload = next(call.args[2] for call in mock_publish.call_args_list if call.args[1] == 'order.deleted')
		self.assertEqual(payload['data'], {'id': order.id, 'booking_id': order.booking_id})


class OrderScenarioTests(DispatchFixtureMixin, TestCase):
	def test_create_assign_complete_then_cancel_conflicts(self):
		order = self.make_order()
		assign_driver(order.id, self.driver.id)
		self.driver.refresh_from_db()
		self.assertFalse(self.driver.is_available)

		update_status(order.id, 'completed')
		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_available)

		with self.assertRaises(OrderStateConflictError):
			cancel_order(order.id, 'x')

		order.refresh_from_db()
		self.assertEqual(order.status, 'completed')
		self.assertEqual(order.driver, self.driver)
		self.assertIsNone(order.cancelled_at)


class OrderApiTests(DispatchFixtureMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.client = APIClient()
		self.client.force_authenticate(user=self.admin)

	def create_payload(self):
		return {
			'customer_id': self.customer.id,
			'vehicle_type': 'bike',
			'locations': LOCATIONS,
			'fare': FARE,
			'notes': 'Leave at door',
		}

	def test_create_order(self):
		response = self.client.post('/api/orders/', self.create_payload(), format='json')

		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['success'])
		self.assertEqual(response.data['data']['status'], 'pending')
		self.assertEqual(response.data['data']['customer']['id'], self.customer.id)
		self.assertEqual(response.data['data']['fare']['total'], '55.50')

	def test_create_order_requires_fare_total(self):
		payload = self.create_payload()
		payload['fare'] = {'base_fare': '10.00'}

		response = self.client.post('/api/orders/', payload, format='json')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation')

	def test_list_orders_paginates_newest_first(self):
		orders = [self.make_order() for _ in range(3)]

		response = self.client.get('/api/orders/', {'page': 1, 'limit': 2})

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['pagination'], {'page': 1, 'limit': 2, 'total': 3, 'pages': 2})
		self.assertEqual([o['id'] for o in response.data['data']], [orders[2].id, orders[1].id])

	def test_list_rejects_bad_pagination_and_status(self):
		for params in ({'limit': 0}, {'limit': 101}, {'page': 0}, {'page': 'x'}, {'status': 'lost'}):
			with self.subTest(params=params):
				response = self.client.get('/api/orders/', params)
				self.assertEqual(response.status_code, 400)
				self.assertEqual(response.data['error'], 'validation')

	def test_assign_and_conflict(self):
		order = self.make_order()
		url = '/api/orders/%d/assign/' % order.id

		response = self.client.patch(url, {'driver_id': self.driver.id}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['assigned_by']['id'], self.admin.id)

		response = self.client.patch(url, {'driver_id': self.driver.id}, format='json')
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data, {
			'success': False,
			'error': 'conflict',
			'message': 'Cannot assign driver. Order status is assigned',
		})

	def test_invalid_status_returns_400(self):
		order = self.make_order()

		response = self.client.patch('/api/orders/%d/status/' % order.id, {'status': 'flying'}, format='json')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['message'], 'Invalid status')

	def test_missing_order_returns_404(self):
		response = self.client.get('/api/orders/9999/')

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'not_found')

	def test_update_and_delete(self):
		order = self.make_order()

		response = self.client.put('/api/orders/%d/' % order.id, {'fare': {'commission': '5.00'}}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['fare']['commission'], '5.00')

		response = self.client.delete('/api/orders/%d/' % order.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['data']['id'], order.id)

	def test_driver_and_customer_order_lists(self):
		order = self.make_order()
		assign_driver(order.id, self.driver.id)

		response = self.client.get('/api/orders/driver/%d/' % self.driver.id, {'status': 'assigned'})
		self.assertEqual(response.data['pagination']['total'], 1)

		response = self.client.get('/api/orders/customer/%d/' % self.customer.id)
		self.assertEqual(response.data['pagination']['total'], 1)

		response = self.client.get('/api/orders/driver/9999/')
		self.assertEqual(response.status_code, 404)

	def test_stats(self):
		order = self.make_order()
		assign_driver(order.id, self.driver.id)
		self.make_order()

		response = self.client.get('/api/orders/stats/')

		self.assertEqual(response.data['data']['total_orders'], 2)
		self.assertEqual(response.data['data']['pending_orders'], 1)
		self.assertEqual(response.data['data']['active_orders'], 1)
		self.assertEqual(response.data['data']['online_drivers'], 0)

	def test_store_timeout_returns_503(self):
		order = self.make_order()

		with patch(
			'services.order_management.order_lifecycle._load_order',
			side_effect=OperationalError('database is locked'),
		):
			response = self.client.patch('/api/orders/%d/cancel/' % order.id, {}, format='json')

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['error'], 'unavailable')

	def test_requires_authentication(self):
		response = APIClient().get('/api/orders/')

		self.assertEqual(response.status_code, 401)
		self.assertFalse(response.data['success'])


class DashboardStatsTaskTests(DispatchFixtureMixin, TestCase):
	@patch.object(NotificationBus, 'publish', return_value=True)
	def test_task_publishes_stats_to_admins(self, mock_publish):
		self.make_order()
		mock_publish.reset_mock()

		stats = broadcast_dashboard_stats_task()

		self.assertEqual(stats['total_orders'], 1)
		self.assertEqual(stats['pending_orders'], 1)
		topic, event, payload = mock_publish.call_args[0]
		self.assertEqual(topic.group_name, 'admins')
		self.assertEqual(event, 'dashboard.stats_update')
		self.assertEqual(payload['data']['total_orders'], 1)

	@override_settings(DISPATCH_STATS_ENABLED=False)
	@patch.object(NotificationBus, 'publish')
	def test_disabled_task_does_nothing(self, mock_publish):
		self.assertIsNone(broadcast_dashboard_stats_task())
		mock_publish.assert_not_called()
