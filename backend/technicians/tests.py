from decimal import Decimal

from django.test import TestCase, override_settings
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from bookings.models import Booking
from common.caller import Caller
from services.job_management.exceptions import InvalidStatusFilterError, NotActiveError, NotAssignedToYouError
from services.matching import find_candidates, start_dispatch
from technicians import services
from technicians.models import TechnicianProfile
from technicians.views import (
	AvailabilityToggleView,
	AvailableJobsView,
	TechnicianBookingDetailView,
	TechnicianBookingsView,
)

# Connaught Place, New Delhi
ORIGIN = (28.6315, 77.2167)


def make_technician(username, lat=None, lon=None, rating='4.00', specializations=None,
					status='active', is_available=True, radius=None):
	user = User.objects.create_user(username=username, password='tech12345', role='technician')
	return TechnicianProfile.objects.create(
		user=user,
		specializations=specializations if specializations is not None else ['AC Repair'],
		status=status,
		is_available=is_available,
		latitude=lat,
		longitude=lon,
		service_radius_km=radius,
		average_rating=Decimal(rating),
	)


class TechnicianDirectoryTests(TestCase):
	def test_filters_by_status_availability_and_specialization(self):
		active = make_technician('active_tech')
		online = make_technician('online_tech', status='online', rating='3.00')
		make_technician('busy_tech', status='busy')
		make_technician('inactive_tech', status='inactive')
		make_technician('off_duty_tech', is_available=False)
		make_technician('plumber', specializations=['Plumbing'])

		candidates = find_candidates('AC Repair')

		self.assertEqual([t.id for t in candidates], [active.id, online.id])

	def test_specialization_match_is_case_insensitive_substring(self):
		tech = make_technician('split_ac_tech', specializations=['Split AC Repair & Service'])

		self.assertEqual(find_candidates('ac repair'), [tech])
		self.assertEqual(find_candidates('Washing Machine'), [])

	def test_excluded_technicians_are_skipped(self):
		first = make_technician('first', rating='5.00')
		second = make_technician('second', rating='4.00')

		self.assertEqual(find_candidates('AC Repair', exclude_ids=[first.id]), [second])
		self.assertEqual(find_candidates('AC Repair', exclude_ids=[first.id, second.id]), [])

	def test_without_location_orders_by_rating_then_id(self):
		low = make_technician('low', rating='3.50')
		tie_a = make_technician('tie_a', rating='4.50')
		tie_b = make_technician('tie_b', rating='4.50')

		self.assertEqual(find_candidates('AC Repair'), [tie_a, tie_b, low])

	@override_settings(DISPATCH_DEFAULT_SERVICE_RADIUS_KM=10)
	def test_with_location_orders_by_distance_and_drops_out_of_radius(self):
		# ~1 km and ~5 km north of the origin
		near = make_technician('near', lat=Decimal('28.640500'), lon=Decimal('77.216700'), rating='3.00')
		far = make_technician('far', lat=Decimal('28.676500'), lon=Decimal('77.216700'), rating='5.00')
		# ~5 km away but only serves 2 km around itself
		small_area = make_technician('small_area', lat=Decimal('28.676500'), lon=Decimal('77.216800'), radius=Decimal('2'))
		# ~30 km away, beyond the default radius
		make_technician('out_of_town', lat=Decimal('28.901500'), lon=Decimal('77.216700'))
		unlocated = make_technician('unlocated', rating='5.00')

		candidates = find_candidates('AC Repair', location=ORIGIN)

		self.assertEqual([t.id for t in candidates], [near.id, far.id, unlocated.id])
		self.assertNotIn(small_area, candidates)
		self.assertAlmostEqual(candidates[0].distance_km, 1.0, delta=0.1)
		self.assertIsNone(candidates[-1].distance_km)


class AvailabilityToggleTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.technician = make_technician('toggler')

	def test_active_technician_toggles_off_and_on(self):
		caller = Caller.from_user(self.technician.user)

		profile = services.toggle_availability(caller)
		self.assertFalse(profile.is_available)
		self.assertEqual(find_candidates('AC Repair'), [])

		profile = services.toggle_availability(caller)
		self.assertTrue(profile.is_available)
		self.assertEqual(find_candidates('AC Repair'), [self.technician])

	def test_non_active_technician_cannot_toggle(self):
		for status in ('inactive', 'busy', 'online', 'offline'):
			TechnicianProfile.objects.filter(pk=self.technician.pk).update(status=status)
			with self.assertRaises(NotActiveError):
				services.toggle_availability(Caller.from_user(self.technician.user))

		self.technician.refresh_from_db()
		self.assertTrue(self.technician.is_available)

	def test_toggle_api(self):
		request = self.factory.post('/api/technicians/availability/toggle/')
		force_authenticate(request, user=self.technician.user)
		response = AvailabilityToggleView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertFalse(response.data['isAvailable'])
		self.assertTrue(response.data['canToggle'])

	def test_toggle_api_rejects_inactive_account(self):
		TechnicianProfile.objects.filter(pk=self.technician.pk).update(status='inactive')

		request = self.factory.post('/api/technicians/availability/toggle/')
		force_authenticate(request, user=self.technician.user)
		response = AvailabilityToggleView.as_view()(request)

		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.data['error'], 'not_active')


class AvailableJobsTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.customer = User.objects.create_user(username='buyer', password='pass1234', role='customer')
		self.technician = make_technician('board_tech', lat=Decimal('28.631500'), lon=Decimal('77.216700'))

	def book(self, service_type, lat=None, lon=None):
		return Booking.objects.create(
			customer=self.customer,
			service_type=service_type,
			amount=Decimal('800.00'),
			latitude=lat,
			longitude=lon,
		)

	def get_board(self):
		request = self.factory.get('/api/technicians/available-jobs/')
		force_authenticate(request, user=self.technician.user)
		return AvailableJobsView.as_view()(request)

	def test_lists_matching_open_bookings_closest_first(self):
		far = self.book('AC Repair', Decimal('28.676500'), Decimal('77.216700'))
		near = self.book('AC Repair', Decimal('28.640500'), Decimal('77.216700'))
		self.book('Plumbing', Decimal('28.640500'), Decimal('77.216700'))
		offered = start_dispatch(far).offer

		response = self.get_board()

		self.assertEqual(response.status_code, 200)
		self.assertEqual([job['id'] for job in response.data['jobs']], [near.id, far.id])
		self.assertIsNone(response.data['jobs'][0]['offeredToYou'])
		self.assertEqual(response.data['jobs'][1]['offeredToYou'], offered.id)

	def test_off_duty_technician_sees_nothing(self):
		self.book('AC Repair')
		TechnicianProfile.objects.filter(pk=self.technician.pk).update(is_available=False)

		response = self.get_board()

		self.assertEqual(response.data['jobs'], [])
		self.assertIn('unavailable', response.data['message'])


class EarningsSummaryTests(TestCase):
	def test_summary_counts_completed_jobs(self):
		from services.job_management import complete_booking
		from services.matching import accept_offer

		customer = User.objects.create_user(username='payer', password='pass1234', role='customer')
		technician = make_technician('earner')
		caller = Caller.from_user(technician.user)

		for amount in ('1000.00', '450.00'):
			booking = Booking.objects.create(customer=customer, service_type='AC Repair', amount=Decimal(amount))
			accept_offer(caller, start_dispatch(booking).offer.id)
			complete_booking(caller, booking.id)

		summary = services.get_earnings_summary(caller)

		self.assertEqual(summary['completedJobs'], 2)
		# 1000 -> 700, 450 -> 450 - 135 = 315
		self.assertEqual(summary['totalEarnings'], Decimal('1015'))
		self.assertEqual(summary['pendingPayout'], Decimal('1015'))
		self.assertEqual(len(summary['recent']), 2)


class TechnicianBookingsTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.customer = User.objects.create_user(username='client', password='pass1234', role='customer')
		self.technician = make_technician('worker')
		self.other = make_technician('colleague')
		self.caller = Caller.from_user(self.technician.user)

		self.assigned = self.book('assigned')
		self.in_progress = self.book('in_progress')
		self.completed = self.book('completed')
		self.cancelled = self.book('cancelled')
		self.not_mine = self.book('assigned', technician=self.other)

	def book(self, status, technician=None):
		return Booking.objects.create(
			customer=self.customer,
			service_type='AC Repair',
			amount=Decimal('600.00'),
			status=status,
			technician=technician or self.technician,
		)

	def test_lists_only_own_bookings_newest_first(self):
		bookings = services.get_technician_bookings(self.caller)

		self.assertEqual(
			[booking.id for booking in bookings],
			[self.cancelled.id, self.completed.id, self.in_progress.id, self.assigned.id]
		)

	def test_active_and_history_groups(self):
		active = services.get_technician_bookings(self.caller, 'active')
		history = services.get_technician_bookings(self.caller, 'history')

		self.assertEqual({booking.id for booking in active}, {self.assigned.id, self.in_progress.id})
		self.assertEqual({booking.id for booking in history}, {self.completed.id, self.cancelled.id})

	def test_exact_status_filter(self):
		bookings = services.get_technician_bookings(self.caller, 'in_progress')

		self.assertEqual([booking.id for booking in bookings], [self.in_progress.id])

	def test_unknown_status_filter_is_rejected(self):
		with self.assertRaises(InvalidStatusFilterError):
			services.get_technician_bookings(self.caller, 'archived')

	def test_detail_of_other_technicians_booking_is_hidden(self):
		with self.assertRaises(NotAssignedToYouError):
			services.get_technician_booking(self.caller, self.not_mine.id)

		booking = services.get_technician_booking(self.caller, self.assigned.id)
		self.assertEqual(booking, self.assigned)

	def test_bookings_api(self):
		request = self.factory.get('/api/technicians/bookings/', {'status': 'history'})
		force_authenticate(request, user=self.technician.user)
		response = TechnicianBookingsView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 2)
		self.assertEqual({item['id'] for item in response.data['bookings']}, {self.completed.id, self.cancelled.id})

		request = self.factory.get('/api/technicians/bookings/', {'status': 'archived'})
		force_authenticate(request, user=self.technician.user)
		response = TechnicianBookingsView.as_view()(request)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'invalid_status_filter')

	def test_booking_detail_api(self):
		path = '/api/technicians/bookings/%d/' % self.not_mine.id
		request = self.factory.get(path)
		force_authenticate(request, user=self.technician.user)
		response = TechnicianBookingDetailView.as_view()(request, booking_id=self.not_mine.id)

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'not_assigned_to_you')

		request = self.factory.get('/api/technicians/bookings/%d/' % self.assigned.id)
		force_authenticate(request, user=self.technician.user)
		response = TechnicianBookingDetailView.as_view()(request, booking_id=self.assigned.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['booking']['id'], self.assigned.id)

	def test_customer_cannot_list_technician_bookings(self):
		request = self.factory.get('/api/technicians/bookings/')
		force_authenticate(request, user=self.customer)
		response = TechnicianBookingsView.as_view()(request)

		self.assertEqual(response.status_code, 403)
