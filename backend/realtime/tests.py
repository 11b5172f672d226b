from unittest.mock import AsyncMock, MagicMock

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase, TestCase, TransactionTestCase

from accounts.models import User
from customers.models import Customer
from drivers.models import Driver
from orders.models import Order
from services.order_management import assign_driver, cancel_order, create_order
from vehicles.models import Vehicle
from .bus import NotificationBus, Topic
from .consumers import AdminConsumer, BookingConsumer, DriverConsumer

LOCATIONS = {
	'pickup': {'address': 'Connaught Place', 'coordinates': [77.2090, 28.6139]},
	'dropoff': {'address': 'India Gate', 'coordinates': [77.2295, 28.6129]},
}


def mock_layer(**kwargs):
	layer = MagicMock()
	layer.group_send = AsyncMock(**kwargs)
	return layer


class TopicTests(SimpleTestCase):
	def test_group_names(self):
		self.assertEqual(Topic.admins().group_name, 'admins')
		self.assertEqual(Topic.broadcast().group_name, 'broadcast')
		self.assertEqual(Topic.driver(42).group_name, 'driver_42')
		self.assertEqual(Topic.booking('BKLX3F9A2C1D0E').group_name, 'booking_BKLX3F9A2C1D0E')

	def test_booking_key_is_made_group_safe(self):
		self.assertEqual(Topic.booking('BK 1/2').group_name, 'booking_BK_1_2')


class NotificationBusTests(SimpleTestCase):
	def test_publish_wraps_event_for_consumers(self):
		layer = mock_layer()
		bus = NotificationBus(layer)

		self.assertTrue(bus.publish(Topic.driver(7), 'driver.online', {'data': {'id': 7}}))

		layer.group_send.assert_awaited_once_with('driver_7', {
			'type': 'dispatch.event',
			'event': 'driver.online',
			'payload': {'data': {'id': 7}},
		})

	def test_publish_failure_is_logged_not_raised(self):
		bus = NotificationBus(mock_layer(side_effect=RuntimeError('redis down')))

		with self.assertLogs('realtime.bus', level='ERROR'):
			delivered = bus.publish(Topic.admins(), 'order.created', {})

		self.assertFalse(delivered)

	def test_publish_many_counts_deliveries(self):
		layer = mock_layer(side_effect=[None, RuntimeError('boom'), None])
		bus = NotificationBus(layer)

		with self.assertLogs('realtime.bus', level='ERROR'):
			delivered = bus.publish_many(
				[Topic.admins(), Topic.broadcast(), Topic.booking('BK1')], 'order.updated', {},
			)

		self.assertEqual(delivered, 2)


class NotificationBusCommitTests(TestCase):
	def test_publish_on_commit_waits_for_commit(self):
		layer = mock_layer()
		bus = NotificationBus(layer)

		with self.captureOnCommitCallbacks(execute=False) as callbacks:
			bus.publish_on_commit([Topic.admins(), Topic.broadcast()], 'order.created', {})

		layer.group_send.assert_not_awaited()
		callbacks[0]()
		self.assertEqual(layer.group_send.await_count, 2)


class ConsumerTestMixin:
	def setUp(self):
		self.customer = Customer.objects.create(name='Asha', phone='9000000000')
		Vehicle.objects.create(vehicle_type='bike', name='Bike', base_fare=20, price_per_km=5)
		self.driver = Driver.objects.create(
			name='Ravi',
			phone='9000000001',
			vehicle_type='bike',
			vehicle_number='DL-1001',
			verification_status='verified',
		)

	def tearDown(self):
		async_to_sync(get_channel_layer().flush)()
		super().tearDown()

	async def receive_types(self, communicator, count):
		messages = [await communicator.receive_json_from(timeout=2) for _ in range(count)]
		return [message['type'] for message in messages], messages

	def new_order(self):
		return create_order(self.customer.id, 'bike', LOCATIONS, {'total': '55.50'}).order


class AdminConsumerTests(ConsumerTestMixin, TransactionTestCase):
	async def test_anonymous_socket_is_rejected(self):
		communicator = WebsocketCommunicator(AdminConsumer.as_asgi(), '/ws/admin/')
		communicator.scope['user'] = AnonymousUser()

		connected, _ = await communicator.connect()

		self.assertFalse(connected)

	async def test_admin_gets_stats_then_order_events(self):
		admin = await database_sync_to_async(User.objects.create_user)(
			username='dispatcher', password='admin1234', role='admin',
		)
		communicator = WebsocketCommunicator(AdminConsumer.as_asgi(), '/ws/admin/')
		communicator.scope['user'] = admin

		connected, _ = await communicator.connect()
		self.assertTrue(connected)

		initial = await communicator.receive_json_from(timeout=2)
		self.assertEqual(initial['type'], 'dashboard.stats_update')
		self.assertEqual(initial['data']['total_orders'], 0)

		order = await database_sync_to_async(self.new_order)()

		types, messages = await self.receive_types(communicator, 2)
		self.assertCountEqual(types, ['order.created', 'dashboard.stats_update'])
		created = messages[types.index('order.created')]
		self.assertEqual(created['data']['booking_id'], order.booking_id)
		self.assertIn('timestamp', created)

		await communicator.disconnect()


class DriverConsumerTests(ConsumerTestMixin, TransactionTestCase):
	async def connect_driver(self):
		communicator = WebsocketCommunicator(DriverConsumer.as_asgi(), '/ws/driver/')
		connected, _ = await communicator.connect()
		self.assertTrue(connected)
		welcome = await communicator.receive_json_from(timeout=2)
		self.assertEqual(welcome['type'], 'connection_established')
		return communicator

	async def test_join_goes_online_and_disconnect_goes_offline(self):
		communicator = await self.connect_driver()

		await communicator.send_json_to({'type': 'driver_join', 'driver_id': self.driver.id})
		types, messages = await self.receive_types(communicator, 3)

		self.assertCountEqual(types, ['driver_joined', 'driver.online', 'driver.availability_changed'])
		self.assertTrue(messages[types.index('driver_joined')]['is_available'])

		driver = await database_sync_to_async(Driver.objects.get)(pk=self.driver.pk)
		self.assertTrue(driver.is_connected)

		await communicator.disconnect()

		driver = await database_sync_to_async(Driver.objects.get)(pk=self.driver.pk)
		self.assertFalse(driver.is_available)
		self.assertIsNone(driver.channel_name)

	async def test_assignment_reaches_driver_once(self):
		communicator = await self.connect_driver()
		await communicator.send_json_to({'type': 'driver_join', 'driver_id': self.driver.id})
		await self.receive_types(communicator, 3)

		order = await database_sync_to_async(self.new_order)()
		# order.created goes out on broadcast
		types, _ = await self.receive_types(communicator, 1)
		self.assertEqual(types, ['order.created'])

		await database_sync_to_async(assign_driver)(order.id, self.driver.id)

		# Published to both broadcast and driver_<id>, relayed once
		types, messages = await self.receive_types(communicator, 2)
		self.assertCountEqual(types, ['order.assigned', 'driver.availability_changed'])
		self.assertEqual(messages[types.index('order.assigned')]['data']['driver']['id'], self.driver.id)
		self.assertTrue(await communicator.receive_nothing())

		await communicator.disconnect()

	async def join_and_take_order(self, communicator):
		await communicator.send_json_to({'type': 'driver_join', 'driver_id': self.driver.id})
		await self.receive_types(communicator, 3)
		order = await database_sync_to_async(self.new_order)()
		await self.receive_types(communicator, 1)
		await database_sync_to_async(assign_driver)(order.id, self.driver.id)
		await self.receive_types(communicator, 2)
		return order

	async def test_driver_accepts_then_rejects_order(self):
		communicator = await self.connect_driver()
		order = await self.join_and_take_order(communicator)

		await communicator.send_json_to({'type': 'driver_accept_order', 'order_id': order.id})
		types, messages = await self.receive_types(communicator, 2)
		self.assertCountEqual(types, ['order_accepted', 'order.status_changed'])
		self.assertEqual(messages[types.index('order_accepted')]['status'], 'accepted')
		self.assertEqual(messages[types.index('order.status_changed')]['new_status'], 'accepted')

		await communicator.send_json_to({
			'type': 'driver_reject_order', 'order_id': order.id, 'reason': 'Vehicle broke down',
		})
		types, messages = await self.receive_types(communicator, 3)
		self.assertCountEqual(types, ['order_rejected', 'order.rejected', 'driver.availability_changed'])
		self.assertEqual(messages[types.index('order.rejected')]['reason'], 'Vehicle broke down')
		self.assertTrue(await communicator.receive_nothing())

		order = await database_sync_to_async(Order.objects.get)(pk=order.pk)
		driver = await database_sync_to_async(Driver.objects.get)(pk=self.driver.pk)
		self.assertEqual(order.status, 'pending')
		self.assertIsNone(order.driver_id)
		self.assertTrue(driver.is_available)
		await communicator.disconnect()

	async def test_accepting_someone_elses_order_is_refused(self):
		other = await database_sync_to_async(Driver.objects.create)(
			name='Meera',
			phone='9000000002',
			vehicle_type='bike',
			vehicle_number='DL-1002',
			verification_status='verified',
			is_available=True,
		)
		order = await database_sync_to_async(self.new_order)()
		await database_sync_to_async(assign_driver)(order.id, other.id)
		communicator = await self.connect_driver()
		await communicator.send_json_to({'type': 'driver_join', 'driver_id': self.driver.id})
		await self.receive_types(communicator, 3)

		await communicator.send_json_to({'type': 'driver_accept_order', 'order_id': order.id})
		error = await communicator.receive_json_from(timeout=2)

		self.assertEqual(error, {'type': 'error', 'message': 'Order is not assigned to this driver', 'error': 'conflict'})
		order = await database_sync_to_async(Order.objects.get)(pk=order.pk)
		self.assertEqual(order.status, 'assigned')
		await communicator.disconnect()

	async def test_messages_before_join_are_refused(self):
		communicator = await self.connect_driver()

		await communicator.send_json_to({'type': 'driver_location_update', 'latitude': 28.6, 'longitude': 77.2})
		error = await communicator.receive_json_from(timeout=2)

		self.assertEqual(error['type'], 'error')
		self.assertIn('driver_join', error['message'])
		await communicator.disconnect()

	async def test_join_unknown_driver_reports_not_found(self):
		communicator = await self.connect_driver()

		await communicator.send_json_to({'type': 'driver_join', 'driver_id': 9999})
		error = await communicator.receive_json_from(timeout=2)

		self.assertEqual(error, {'type': 'error', 'message': 'Driver not found', 'error': 'not_found'})
		await communicator.disconnect()

	async def test_location_and_availability_updates(self):
		communicator = await self.connect_driver()
		await communicator.send_json_to({'type': 'driver_join', 'driver_id': self.driver.id})
		await self.receive_types(communicator, 3)

		await communicator.send_json_to({'type': 'driver_location_update', 'latitude': 28.7, 'longitude': 77.1})
		types, messages = await self.receive_types(communicator, 1)
		self.assertEqual(types, ['driver.location_update'])
		self.assertEqual(messages[0]['latitude'], '28.700000')

		await communicator.send_json_to({'type': 'driver_availability_update', 'is_available': False})
		types, messages = await self.receive_types(communicator, 2)
		self.assertCountEqual(types, ['availability_updated', 'driver.availability_changed'])

		driver = await database_sync_to_async(Driver.objects.get)(pk=self.driver.pk)
		self.assertFalse(driver.is_available)
		await communicator.disconnect()


class BookingConsumerTests(ConsumerTestMixin, TransactionTestCase):
	async def test_follower_receives_cancellation_once(self):
		order = await database_sync_to_async(self.new_order)()
		communicator = WebsocketCommunicator(BookingConsumer.as_asgi(), '/ws/booking/')
		connected, _ = await communicator.connect()
		self.assertTrue(connected)
		await communicator.receive_json_from(timeout=2)

		await communicator.send_json_to({'type': 'booking_join', 'booking_id': order.booking_id})
		joined = await communicator.receive_json_from(timeout=2)
		self.assertEqual(joined, {'type': 'booking_joined', 'booking_id': order.booking_id})

		await database_sync_to_async(cancel_order)(order.id, 'Customer changed plans')

		event = await communicator.receive_json_from(timeout=2)
		self.assertEqual(event['type'], 'order.cancelled')
		self.assertEqual(event['reason'], 'Customer changed plans')
		self.assertEqual(event['previous_status'], 'pending')
		self.assertTrue(await communicator.receive_nothing())

		await communicator.send_json_to({'type': 'booking_leave', 'booking_id': order.booking_id})
		left = await communicator.receive_json_from(timeout=2)
		self.assertEqual(left['type'], 'booking_left')
		await communicator.disconnect()

	async def test_unknown_booking_is_refused(self):
		communicator = WebsocketCommunicator(BookingConsumer.as_asgi(), '/ws/booking/')
		await communicator.connect()
		await communicator.receive_json_from(timeout=2)

		await communicator.send_json_to({'type': 'booking_join', 'booking_id': 'BKNOPE'})
		error = await communicator.receive_json_from(timeout=2)

		self.assertEqual(error['error'], 'not_found')
		await communicator.disconnect()
