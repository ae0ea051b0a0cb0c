from datetime import timedelta
from decimal import Decimal

from django.core.management import call_command
from django.db import DatabaseError, transaction
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate
from unittest.mock import patch

from accounts.models import User
from common.caller import Caller
from common.exception_handler import dependency_aware_exception_handler
from realtime.models import Notification
from realtime.notifications import user_group
from services.job_management import (
	BookingNotFoundError,
	InvalidAmountError,
	InvalidStateError,
	NotAssignedToYouError,
	OfferExpiredError,
	OfferNotFoundError,
	AlreadyRatedError,
	TechnicianNotFoundError,
	TechnicianNotQualifiedError,
	TechnicianUnavailableError,
	cancel_assigned,
	cancel_by_customer,
	claim_booking,
	complete_booking,
	start_booking,
	submit_rating,
)
from services.matching import (
	accept_offer,
	assign_by_admin,
	create_offer,
	expire_offer_and_dispatch,
	find_candidates,
	get_assignment_candidates,
	get_dispatch_state,
	process_offer_timeouts,
	reject_offer,
	start_dispatch,
)
from services.matching.offer_dispatch import ASSIGNED, EXHAUSTED, OFFER_PENDING
from services.matching.offer_store import ACCEPT, REJECT, respond
from services.job_management.exceptions import (
	DispatchAlreadyInProgressError,
	DuplicatePendingOfferError,
)
from technicians.models import TechnicianProfile
from .models import Booking, EarningsRecord, JobOffer
from .views import (
	accept_job_offer,
	assign_technician,
	assignment_candidates,
	complete_job,
	create_booking_view,
	redispatch_booking,
	reject_job_offer,
)


class DispatchTestMixin:
	def create_customer(self, username='customer'):
		return User.objects.create_user(
			username=username,
			password='pass1234',
			role='customer',
			phone_number='9000000000'
		)

	def create_technician(self, username, rating='4.00', specializations=None, status='active', **extra):
		user = User.objects.create_user(
			username=username,
			password='tech12345',
			role='technician',
		)
		return TechnicianProfile.objects.create(
			user=user,
			specializations=specializations or ['AC Repair', 'Refrigerator Repair'],
			status=status,
			is_available=True,
			average_rating=Decimal(rating),
			**extra
		)

	def create_booking(self, amount=Decimal('1000.00'), service_type='AC Repair', **extra):
		return Booking.objects.create(
			customer=self.customer,
			customer_name='Asha',
			service_type=service_type,
			service_name='AC Service',
			amount=amount,
			status='pending',
			**extra
		)

	def expire(self, offer):
		JobOffer.objects.filter(pk=offer.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

	def pending_offer(self, booking):
		return JobOffer.objects.get(booking=booking, status='pending')


class DispatchFlowTests(DispatchTestMixin, TestCase):
	def setUp(self):
		self.customer = self.create_customer()
		self.tech_one = self.create_technician('tech_one', rating='4.80')
		self.tech_two = self.create_technician('tech_two', rating='4.50')
		self.tech_three = self.create_technician('tech_three', rating='3.90')
		self.booking = self.create_booking()

	def caller(self, technician):
		return Caller.from_user(technician.user)

	def test_start_dispatch_offers_best_rated_technician_first(self):
		result = start_dispatch(self.booking)

		self.assertEqual(result.state, OFFER_PENDING)
		offer = result.offer
		self.assertEqual(offer.technician, self.tech_one)
		self.assertEqual(offer.status, 'pending')
		self.assertEqual(offer.previous_declines, [])
		self.assertEqual(offer.expires_at - offer.created_at, timedelta(seconds=300))
		self.assertEqual(offer.total_amount, Decimal('1000'))
		self.assertEqual(offer.admin_commission, Decimal('300'))
		self.assertEqual(offer.technician_earnings, Decimal('700'))

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.dispatch_attempt, 1)
		self.assertEqual(get_dispatch_state(self.booking), OFFER_PENDING)
		self.assertTrue(
			Notification.objects.filter(recipient=self.tech_one.user, event_type='new_job_offer').exists()
		)

	def test_start_dispatch_twice_is_rejected(self):
		start_dispatch(self.booking)

		with self.assertRaises(DispatchAlreadyInProgressError):
			start_dispatch(self.booking)
		self.assertEqual(JobOffer.objects.filter(booking=self.booking).count(), 1)

	def test_second_pending_offer_for_booking_is_refused(self):
		start_dispatch(self.booking)

		with self.assertRaises(DuplicatePendingOfferError):
			create_offer(self.booking, self.tech_two, [])
		self.assertEqual(JobOffer.objects.filter(booking=self.booking, status='pending').count(), 1)

	def test_schedules_expiry_task_after_commit(self):
		with patch('services.matching.offer_dispatch.expire_job_offer_task') as mock_task:
			with self.captureOnCommitCallbacks(execute=True):
				result = start_dispatch(self.booking)

		mock_task.apply_async.assert_called_once_with((result.offer.id,), countdown=301)

	def test_reject_forwards_to_next_technician(self):
		first = start_dispatch(self.booking).offer

		result = reject_offer(self.caller(self.tech_one), first.id, 'Too far')

		self.assertTrue(result.forwarded)
		first.refresh_from_db()
		self.assertEqual(first.status, 'rejected')
		self.assertEqual(first.rejection_reason, 'Too far')

		second = self.pending_offer(self.booking)
		self.assertEqual(second.technician, self.tech_two)
		self.assertEqual(second.previous_declines, [self.tech_one.id])
		self.assertTrue(
			Notification.objects.filter(recipient_type='admin', event_type='job_rejected').exists()
		)

	def test_rejections_never_reoffer_and_end_exhausted(self):
		offer = start_dispatch(self.booking).offer
		for technician in (self.tech_one, self.tech_two):
			result = reject_offer(self.caller(technician), offer.id)
			self.assertTrue(result.forwarded)
			offer = self.pending_offer(self.booking)

		self.assertEqual(offer.technician, self.tech_three)
		self.assertEqual(offer.previous_declines, [self.tech_one.id, self.tech_two.id])

		result = reject_offer(self.caller(self.tech_three), offer.id)

		self.assertFalse(result.forwarded)
		self.assertEqual(result.state, EXHAUSTED)
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, 'pending')
		self.assertTrue(self.booking.no_technician_available)
		self.assertFalse(JobOffer.objects.filter(booking=self.booking, status='pending').exists())

		offered_to = list(JobOffer.objects.filter(booking=self.booking).values_list('technician_id', flat=True))
		self.assertEqual(sorted(offered_to), sorted([self.tech_one.id, self.tech_two.id, self.tech_three.id]))
		self.assertTrue(
			Notification.objects.filter(recipient=self.customer, event_type='no_technician_available').exists()
		)

	def test_no_matching_technician_marks_booking_exhausted(self):
		booking = self.create_booking(service_type='Plumbing')

		result = start_dispatch(booking)

		self.assertIsNone(result.offer)
		self.assertEqual(result.state, EXHAUSTED)
		booking.refresh_from_db()
		self.assertTrue(booking.no_technician_available)
		self.assertEqual(booking.status, 'pending')
		self.assertFalse(JobOffer.objects.filter(booking=booking).exists())
		self.assertTrue(Notification.objects.filter(recipient_type='admin', event_type='dispatch_exhausted').exists())

	def test_exhausted_booking_can_be_dispatched_again(self):
		TechnicianProfile.objects.update(is_available=False)
		start_dispatch(self.booking)
		self.booking.refresh_from_db()
		self.assertEqual(get_dispatch_state(self.booking), EXHAUSTED)

		TechnicianProfile.objects.update(is_available=True)
		result = start_dispatch(self.booking)

		self.assertEqual(result.offer.technician, self.tech_one)
		self.assertEqual(result.offer.attempt, 2)
		self.booking.refresh_from_db()
		self.assertFalse(self.booking.no_technician_available)

	def test_accept_assigns_booking_and_marks_technician_busy(self):
		offer = start_dispatch(self.booking).offer

		result = accept_offer(self.caller(self.tech_one), offer.id)

		self.assertEqual(result.state, ASSIGNED)
		offer.refresh_from_db()
		self.booking.refresh_from_db()
		self.tech_one.refresh_from_db()
		self.assertEqual(offer.status, 'accepted')
		self.assertIsNotNone(offer.responded_at)
		self.assertEqual(self.booking.status, 'assigned')
		self.assertEqual(self.booking.technician, self.tech_one)
		self.assertIsNotNone(self.booking.assigned_at)
		self.assertEqual(self.tech_one.status, 'busy')
		self.assertTrue(
			Notification.objects.filter(recipient=self.customer, event_type='technician_assigned').exists()
		)

	def test_offer_can_only_be_accepted_once(self):
		offer = start_dispatch(self.booking).offer
		accept_offer(self.caller(self.tech_one), offer.id)

		with self.assertRaises(OfferNotFoundError):
			accept_offer(self.caller(self.tech_one), offer.id)
		with self.assertRaises(OfferNotFoundError):
			reject_offer(self.caller(self.tech_one), offer.id)

	def test_other_technician_cannot_answer_offer(self):
		offer = start_dispatch(self.booking).offer

		with self.assertRaises(OfferNotFoundError):
			accept_offer(self.caller(self.tech_two), offer.id)
		offer.refresh_from_db()
		self.assertEqual(offer.status, 'pending')

	def test_accept_after_window_expires_offer_and_cascades(self):
		offer = start_dispatch(self.booking).offer
		self.expire(offer)

		with self.assertRaises(OfferExpiredError):
			accept_offer(self.caller(self.tech_one), offer.id)

		offer.refresh_from_db()
		self.booking.refresh_from_db()
		self.assertEqual(offer.status, 'expired')
		self.assertIsNone(self.booking.technician)
		next_offer = self.pending_offer(self.booking)
		self.assertEqual(next_offer.technician, self.tech_two)
		self.assertEqual(next_offer.previous_declines, [self.tech_one.id])

	def test_reject_after_window_reports_expiry(self):
		offer = start_dispatch(self.booking).offer
		self.expire(offer)

		with self.assertRaises(OfferExpiredError):
			reject_offer(self.caller(self.tech_one), offer.id)

		offer.refresh_from_db()
		self.assertEqual(offer.status, 'expired')
		self.assertEqual(self.pending_offer(self.booking).technician, self.tech_two)

	def test_expire_offer_ignores_offer_inside_window(self):
		offer = start_dispatch(self.booking).offer

		self.assertFalse(expire_offer_and_dispatch(offer.id))
		offer.refresh_from_db()
		self.assertEqual(offer.status, 'pending')

	def test_expire_offer_does_not_touch_decided_offer(self):
		offer = start_dispatch(self.booking).offer
		accept_offer(self.caller(self.tech_one), offer.id)
		self.expire(offer)

		self.assertFalse(expire_offer_and_dispatch(offer.id))
		offer.refresh_from_db()
		self.assertEqual(offer.status, 'accepted')
		self.assertEqual(JobOffer.objects.filter(booking=self.booking).count(), 1)

	def test_process_offer_timeouts_expires_and_dispatches(self):
		offer = start_dispatch(self.booking).offer
		self.expire(offer)

		expired_count, dispatched_count = process_offer_timeouts()

		self.assertEqual((expired_count, dispatched_count), (1, 1))
		offer.refresh_from_db()
		self.assertEqual(offer.status, 'expired')
		self.assertIsNotNone(offer.responded_at)
		self.assertEqual(self.pending_offer(self.booking).technician, self.tech_two)
		self.assertTrue(
			Notification.objects.filter(recipient=self.tech_one.user, event_type='offer_expired').exists()
		)

	def test_process_offer_timeouts_command(self):
		offer = start_dispatch(self.booking).offer
		self.expire(offer)

		call_command('process_offer_timeouts')

		offer.refresh_from_db()
		self.booking.refresh_from_db()
		self.assertEqual(offer.status, 'expired')
		self.assertEqual(self.booking.status, 'pending')
		self.assertEqual(self.pending_offer(self.booking).technician, self.tech_two)

	def test_customer_cancel_closes_pending_offer(self):
		offer = start_dispatch(self.booking).offer

		cancel_by_customer(Caller.from_user(self.customer), self.booking.id, 'Changed plans')

		offer.refresh_from_db()
		self.booking.refresh_from_db()
		self.assertEqual(offer.status, 'expired')
		self.assertEqual(self.booking.status, 'cancelled')
		self.assertEqual(self.booking.cancelled_by, 'customer')
		with self.assertRaises(OfferNotFoundError):
			accept_offer(self.caller(self.tech_one), offer.id)

	def test_stale_offer_of_superseded_attempt_does_not_cascade(self):
		offer = start_dispatch(self.booking).offer
		Booking.objects.filter(pk=self.booking.pk).update(dispatch_attempt=2)

		result = reject_offer(self.caller(self.tech_one), offer.id)

		self.assertFalse(result.forwarded)
		self.assertFalse(JobOffer.objects.filter(booking=self.booking, status='pending').exists())

	def test_notification_failure_does_not_block_acceptance(self):
		offer = start_dispatch(self.booking).offer

		with patch('realtime.notifications._push', side_effect=RuntimeError('channel layer down')) as mock_push:
			with self.assertLogs('realtime.notifications', level='ERROR'):
				with self.captureOnCommitCallbacks(execute=True):
					result = accept_offer(self.caller(self.tech_one), offer.id)

		self.assertTrue(mock_push.called)
		self.assertEqual(result.booking.status, 'assigned')
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.technician, self.tech_one)

	def test_pushes_wait_for_commit(self):
		with patch('realtime.notifications._push') as mock_push, \
				patch('services.matching.offer_dispatch.expire_job_offer_task'):
			with self.captureOnCommitCallbacks(execute=True):
				offer = start_dispatch(self.booking).offer
				mock_push.assert_not_called()

		pushed = [
			(call.args[0], call.args[1]['event_type'], call.args[1].get('offer_id'))
			for call in mock_push.call_args_list
		]
		self.assertIn((user_group(self.tech_one.user_id), 'new_job_offer', offer.id), pushed)

	def test_rolled_back_transition_pushes_nothing(self):
		with patch('realtime.notifications._push') as mock_push:
			with self.captureOnCommitCallbacks(execute=True) as callbacks:
				with self.assertRaises(RuntimeError):
					with transaction.atomic():
						start_dispatch(self.booking)
						raise RuntimeError('checkout aborted')

		self.assertEqual(callbacks, [])
		mock_push.assert_not_called()
		self.assertFalse(JobOffer.objects.filter(booking=self.booking).exists())
		self.assertFalse(Notification.objects.filter(event_type='new_job_offer').exists())

	def test_sweep_failure_on_one_booking_does_not_hold_back_others(self):
		fridge_booking = self.create_booking(service_type='Refrigerator Repair')
		ac_offer = start_dispatch(self.booking).offer
		fridge_offer = start_dispatch(fridge_booking).offer
		self.expire(ac_offer)
		self.expire(fridge_offer)

		def flaky_directory(service_type, *args, **kwargs):
			if service_type == 'Refrigerator Repair':
				raise DatabaseError('replica went away')
			return find_candidates(service_type, *args, **kwargs)

		with patch('services.matching.offer_dispatch.find_candidates', side_effect=flaky_directory):
			with self.assertLogs('services.matching.offer_store', level='ERROR'):
				expired_count, dispatched_count = process_offer_timeouts()

		self.assertEqual((expired_count, dispatched_count), (1, 1))
		ac_offer.refresh_from_db()
		fridge_offer.refresh_from_db()
		self.assertEqual(ac_offer.status, 'expired')
		self.assertEqual(self.pending_offer(self.booking).technician, self.tech_two)
		self.assertEqual(fridge_offer.status, 'pending')
		self.assertEqual(JobOffer.objects.filter(booking=fridge_booking).count(), 1)

		# The failed offer is picked up again by the next sweep
		self.assertEqual(process_offer_timeouts(), (1, 1))
		fridge_offer.refresh_from_db()
		self.assertEqual(fridge_offer.status, 'expired')
		self.assertEqual(self.pending_offer(fridge_booking).technician, self.tech_two)

	def test_accept_losing_race_to_another_response_reports_offer_gone(self):
		offer = start_dispatch(self.booking).offer
		answered_at = timezone.now() - timedelta(seconds=5)

		def answered_meanwhile(instance, now=None):
			# A concurrent request accepts between the read and the conditional update
			JobOffer.objects.filter(pk=instance.pk).update(status='accepted', responded_at=answered_at)
			return False

		with patch.object(JobOffer, 'is_expired', autospec=True, side_effect=answered_meanwhile):
			with self.assertRaises(OfferNotFoundError):
				respond(offer.id, self.tech_one, ACCEPT)

		offer.refresh_from_db()
		self.assertEqual(offer.status, 'accepted')
		self.assertEqual(offer.responded_at, answered_at)

	def test_reject_losing_race_to_sweep_leaves_offer_expired(self):
		offer = start_dispatch(self.booking).offer

		def swept_meanwhile(instance, now=None):
			JobOffer.objects.filter(pk=instance.pk).update(status='expired', responded_at=timezone.now())
			return False

		with patch.object(JobOffer, 'is_expired', autospec=True, side_effect=swept_meanwhile):
			with self.assertRaises(OfferNotFoundError):
				respond(offer.id, self.tech_one, REJECT, reason='Too far')

		offer.refresh_from_db()
		self.assertEqual(offer.status, 'expired')
		self.assertEqual(offer.rejection_reason, '')

	def test_accept_of_booking_claimed_meanwhile_is_refused(self):
		offer = start_dispatch(self.booking).offer
		claim_booking(self.booking.id, self.tech_two.id)

		with self.assertRaises(InvalidStateError):
			accept_offer(self.caller(self.tech_one), offer.id)

		offer.refresh_from_db()
		self.booking.refresh_from_db()
		self.tech_one.refresh_from_db()
		self.assertEqual(offer.status, 'pending')
		self.assertEqual(self.booking.technician, self.tech_two)
		self.assertEqual(self.tech_one.status, 'active')

	def test_accept_by_technician_no_longer_dispatchable_is_rolled_back(self):
		offer = start_dispatch(self.booking).offer
		TechnicianProfile.objects.filter(pk=self.tech_one.pk).update(status='busy')

		with self.assertRaises(TechnicianUnavailableError):
			accept_offer(self.caller(self.tech_one), offer.id)

		offer.refresh_from_db()
		self.booking.refresh_from_db()
		self.assertEqual(offer.status, 'pending')
		self.assertEqual(self.booking.status, 'pending')
		self.assertIsNone(self.booking.technician)

	def test_second_claim_of_same_booking_fails(self):
		claim_booking(self.booking.id, self.tech_one.id)

		with self.assertRaises(InvalidStateError):
			claim_booking(self.booking.id, self.tech_two.id)

		self.tech_two.refresh_from_db()
		self.assertEqual(self.tech_two.status, 'active')
		self.assertEqual(Booking.objects.filter(technician__isnull=False).count(), 1)


class SettlementTests(DispatchTestMixin, TestCase):
	def setUp(self):
		self.customer = self.create_customer()
		self.technician = self.create_technician('settle_tech')
		self.other = self.create_technician('other_tech', rating='1.00')
		self.booking = self.create_booking()

	def assign(self, booking):
		offer = start_dispatch(booking).offer
		accept_offer(Caller.from_user(self.technician.user), offer.id)
		booking.refresh_from_db()
		return booking

	def test_complete_writes_earnings_and_frees_technician(self):
		self.assign(self.booking)

		result = complete_booking(Caller.from_user(self.technician.user), self.booking.id, 'Gas refilled')

		self.assertEqual(result.split.technician_earnings + result.split.admin_commission, Decimal('1000'))
		self.booking.refresh_from_db()
		self.technician.refresh_from_db()
		self.assertEqual(self.booking.status, 'completed')
		self.assertIsNotNone(self.booking.completed_at)
		self.assertEqual(self.booking.notes, 'Gas refilled')
		self.assertEqual(self.booking.earnings_snapshot['technicianEarnings'], 700)
		self.assertEqual(self.booking.earnings_snapshot['adminCommission'], 300)
		self.assertEqual(self.technician.status, 'active')
		self.assertEqual(self.technician.completed_bookings, 1)

		record = EarningsRecord.objects.get(booking=self.booking)
		self.assertEqual(record.technician, self.technician)
		self.assertEqual(record.technician_earnings, Decimal('700'))
		self.assertEqual(record.admin_commission, Decimal('300'))
		self.assertEqual(record.commission_percentage, Decimal('30'))
		self.assertTrue(
			Notification.objects.filter(recipient=self.customer, event_type='booking_completed').exists()
		)

	def test_complete_in_progress_booking(self):
		self.assign(self.booking)
		start_booking(Caller.from_user(self.technician.user), self.booking.id)
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, 'in_progress')

		complete_booking(Caller.from_user(self.technician.user), self.booking.id)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, 'completed')

	def test_invalid_amount_leaves_booking_untouched(self):
		booking = self.assign(self.create_booking(amount=None))

		with self.assertRaises(InvalidAmountError):
			complete_booking(Caller.from_user(self.technician.user), booking.id)

		booking.refresh_from_db()
		self.technician.refresh_from_db()
		self.assertEqual(booking.status, 'assigned')
		self.assertIsNone(booking.earnings_snapshot)
		self.assertEqual(self.technician.status, 'busy')
		self.assertEqual(self.technician.completed_bookings, 0)
		self.assertFalse(EarningsRecord.objects.filter(booking=booking).exists())

	def test_other_technician_cannot_complete(self):
		self.assign(self.booking)

		with self.assertRaises(NotAssignedToYouError):
			complete_booking(Caller.from_user(self.other.user), self.booking.id)
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, 'assigned')

	def test_completed_booking_cannot_be_completed_again(self):
		self.assign(self.booking)
		complete_booking(Caller.from_user(self.technician.user), self.booking.id)

		with self.assertRaises(InvalidStateError):
			complete_booking(Caller.from_user(self.technician.user), self.booking.id)
		self.assertEqual(EarningsRecord.objects.filter(booking=self.booking).count(), 1)

	def test_unknown_booking(self):
		with self.assertRaises(BookingNotFoundError):
			complete_booking(Caller.from_user(self.technician.user), 999999)

	def test_technician_cancel_does_not_redispatch(self):
		self.assign(self.booking)

		cancel_assigned(Caller.from_user(self.technician.user), self.booking.id, 'Spare part unavailable')

		self.booking.refresh_from_db()
		self.technician.refresh_from_db()
		self.assertEqual(self.booking.status, 'cancelled')
		self.assertEqual(self.booking.cancellation_reason, 'Spare part unavailable')
		self.assertIsNotNone(self.booking.cancelled_at)
		self.assertEqual(self.technician.status, 'active')
		self.assertFalse(JobOffer.objects.filter(booking=self.booking, status='pending').exists())

	def test_rating_updates_technician_average(self):
		self.assign(self.booking)
		complete_booking(Caller.from_user(self.technician.user), self.booking.id)

		submit_rating(Caller.from_user(self.customer), self.booking.id, 5, 'Quick and clean')

		self.technician.refresh_from_db()
		self.assertEqual(self.technician.rating_count, 1)
		self.assertEqual(self.technician.average_rating, Decimal('5.00'))
		with self.assertRaises(AlreadyRatedError):
			submit_rating(Caller.from_user(self.customer), self.booking.id, 4)

	def test_rating_requires_completed_booking(self):
		self.assign(self.booking)

		with self.assertRaises(InvalidStateError):
			submit_rating(Caller.from_user(self.customer), self.booking.id, 4)


class JobOfferApiTests(DispatchTestMixin, TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.customer = self.create_customer()
		self.tech_one = self.create_technician('api_tech_one', rating='4.90')
		self.tech_two = self.create_technician('api_tech_two', rating='4.10')
		self.booking = self.create_booking()
		self.offer = start_dispatch(self.booking).offer

	def post(self, view, path, user=None, data=None, **kwargs):
		request = self.factory.post(path, data or {}, format='json')
		if user is not None:
			force_authenticate(request, user=user)
		return view(request, **kwargs)

	def test_accept_requires_authentication(self):
		response = self.post(accept_job_offer, '/api/jobs/%d/accept/' % self.offer.id, offer_id=self.offer.id)

		self.assertEqual(response.status_code, 401)

	def test_accept_requires_technician_role(self):
		response = self.post(
			accept_job_offer, '/api/jobs/%d/accept/' % self.offer.id,
			user=self.customer, offer_id=self.offer.id
		)

		self.assertEqual(response.status_code, 403)

	def test_accept_unknown_offer_is_404(self):
		response = self.post(accept_job_offer, '/api/jobs/0/accept/', user=self.tech_one.user, offer_id=0)

		self.assertEqual(response.status_code, 404)
		self.assertFalse(response.data['success'])
		self.assertEqual(response.data['error'], 'offer_not_found')

	def test_accept_expired_offer_is_400(self):
		self.expire(self.offer)

		response = self.post(
			accept_job_offer, '/api/jobs/%d/accept/' % self.offer.id,
			user=self.tech_one.user, offer_id=self.offer.id
		)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'offer_expired')

	def test_accept_returns_job_summary(self):
		response = self.post(
			accept_job_offer, '/api/jobs/%d/accept/' % self.offer.id,
			user=self.tech_one.user, offer_id=self.offer.id
		)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['success'])
		job = response.data['job']
		self.assertEqual(job['id'], self.offer.id)
		self.assertEqual(job['bookingId'], self.booking.id)
		self.assertEqual(job['status'], 'accepted')
		self.assertEqual(job['earnings']['technicianEarnings'], Decimal('700'))

	def test_reject_reports_forwarding(self):
		response = self.post(
			reject_job_offer, '/api/jobs/%d/reject/' % self.offer.id,
			user=self.tech_one.user, data={'reason': 'Busy'}, offer_id=self.offer.id
		)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['forwardedToNextTechnician'])
		self.assertEqual(self.pending_offer(self.booking).technician, self.tech_two)

	def test_complete_returns_earnings(self):
		self.post(
			accept_job_offer, '/api/jobs/%d/accept/' % self.offer.id,
			user=self.tech_one.user, offer_id=self.offer.id
		)

		response = self.post(
			complete_job, '/api/bookings/%d/complete/' % self.booking.id,
			user=self.tech_one.user, data={'notes': 'Done'}, booking_id=self.booking.id
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['earnings']['technicianEarnings'], 700)
		self.assertEqual(response.data['earnings']['adminCommission'], 300)

	def test_complete_by_other_technician_is_404(self):
		self.post(
			accept_job_offer, '/api/jobs/%d/accept/' % self.offer.id,
			user=self.tech_one.user, offer_id=self.offer.id
		)

		response = self.post(
			complete_job, '/api/bookings/%d/complete/' % self.booking.id,
			user=self.tech_two.user, booking_id=self.booking.id
		)

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'not_assigned_to_you')

	def test_create_booking_starts_dispatch(self):
		response = self.post(
			create_booking_view, '/api/bookings/', user=self.customer,
			data={'service_type': 'Refrigerator Repair', 'amount': '450.00', 'address': 'MG Road'}
		)

		self.assertEqual(response.status_code, 201)
		booking = Booking.objects.get(pk=response.data['booking']['id'])
		self.assertEqual(booking.booking_reference, 'BK%06d' % booking.id)
		self.assertEqual(booking.customer_name, self.customer.display_name)
		self.assertEqual(self.pending_offer(booking).technician, self.tech_one)

	def test_create_booking_rejects_negative_amount(self):
		response = self.post(
			create_booking_view, '/api/bookings/', user=self.customer,
			data={'service_type': 'AC Repair', 'amount': '-5'}
		)

		self.assertEqual(response.status_code, 400)

	def test_admin_redispatches_exhausted_booking(self):
		admin = User.objects.create_user(username='ops', password='admin12345', role='admin')
		for _ in range(2):
			offer = self.pending_offer(self.booking)
			reject_offer(Caller.from_user(offer.technician.user), offer.id)
		self.booking.refresh_from_db()
		self.assertTrue(self.booking.no_technician_available)

		path = '/api/bookings/%d/dispatch/' % self.booking.id
		response = self.post(redispatch_booking, path, user=self.customer, booking_id=self.booking.id)
		self.assertEqual(response.status_code, 403)

		response = self.post(redispatch_booking, path, user=admin, booking_id=self.booking.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['dispatchState'], OFFER_PENDING)
		self.assertEqual(self.pending_offer(self.booking).technician, self.tech_one)

		response = self.post(redispatch_booking, path, user=admin, booking_id=self.booking.id)
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'dispatch_in_progress')

	def test_create_booking_keeps_nothing_when_dispatch_fails(self):
		before = Booking.objects.count()

		with patch('services.matching.offer_dispatch.find_candidates', side_effect=DatabaseError('replica went away')):
			with self.assertLogs('common.exception_handler', level='ERROR'):
				response = self.post(
					create_booking_view, '/api/bookings/', user=self.customer,
					data={'service_type': 'AC Repair', 'amount': '500.00'}
				)

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['error'], 'service_unavailable')
		self.assertEqual(Booking.objects.count(), before)


class AdminAssignmentTests(DispatchTestMixin, TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.customer = self.create_customer()
		self.admin = User.objects.create_user(username='ops', password='admin12345', role='admin')
		self.tech_one = self.create_technician('assign_one', rating='4.80')
		self.tech_two = self.create_technician('assign_two', rating='4.50')
		self.plumber = self.create_technician('plumber', rating='5.00', specializations=['Plumbing'])
		self.booking = self.create_booking()
		self.offer = start_dispatch(self.booking).offer

	def assign(self, technician_id):
		return assign_by_admin(Caller.from_user(self.admin), self.booking.id, technician_id)

	def test_assign_closes_pending_offer(self):
		result = self.assign(self.tech_two.id)

		self.assertEqual(result.state, ASSIGNED)
		self.offer.refresh_from_db()
		self.booking.refresh_from_db()
		self.tech_two.refresh_from_db()
		self.assertEqual(self.offer.status, 'expired')
		self.assertEqual(self.booking.status, 'assigned')
		self.assertEqual(self.booking.technician, self.tech_two)
		self.assertIsNotNone(self.booking.assigned_at)
		self.assertEqual(self.tech_two.status, 'busy')

		self.assertTrue(
			Notification.objects.filter(recipient=self.tech_one.user, event_type='offer_withdrawn').exists()
		)
		assigned = Notification.objects.get(recipient=self.tech_two.user, event_type='job_assigned')
		self.assertEqual(assigned.title, 'New Job Assignment')
		self.assertTrue(
			Notification.objects.filter(recipient=self.customer, event_type='technician_assigned').exists()
		)

		with self.assertRaises(OfferNotFoundError):
			accept_offer(Caller.from_user(self.tech_one.user), self.offer.id)

	def test_assign_exhausted_booking(self):
		reject_offer(Caller.from_user(self.tech_one.user), self.offer.id)
		reject_offer(Caller.from_user(self.tech_two.user), self.pending_offer(self.booking).id)
		self.booking.refresh_from_db()
		self.assertTrue(self.booking.no_technician_available)

		self.assign(self.tech_one.id)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.technician, self.tech_one)
		self.assertFalse(self.booking.no_technician_available)

	def test_unqualified_technician_is_refused(self):
		with self.assertRaises(TechnicianNotQualifiedError):
			self.assign(self.plumber.id)

		self.offer.refresh_from_db()
		self.assertEqual(self.offer.status, 'pending')

	def test_offline_technician_is_refused(self):
		TechnicianProfile.objects.filter(pk=self.tech_two.pk).update(status='offline')

		with self.assertRaises(TechnicianUnavailableError):
			self.assign(self.tech_two.id)

	def test_unknown_technician(self):
		with self.assertRaises(TechnicianNotFoundError):
			self.assign(0)

	def test_assigned_booking_cannot_be_reassigned(self):
		accept_offer(Caller.from_user(self.tech_one.user), self.offer.id)

		with self.assertRaises(InvalidStateError):
			self.assign(self.tech_two.id)

		self.tech_two.refresh_from_db()
		self.assertEqual(self.tech_two.status, 'active')

	def test_candidates_match_service_type(self):
		candidates = get_assignment_candidates(self.booking.id)

		self.assertEqual(candidates, [self.tech_one, self.tech_two])

	def test_assign_api(self):
		path = '/api/bookings/%d/assign/' % self.booking.id

		request = self.factory.post(path, {'technicianId': self.tech_two.id}, format='json')
		force_authenticate(request, user=self.customer)
		self.assertEqual(assign_technician(request, booking_id=self.booking.id).status_code, 403)

		request = self.factory.post(path, {}, format='json')
		force_authenticate(request, user=self.admin)
		self.assertEqual(assign_technician(request, booking_id=self.booking.id).status_code, 400)

		request = self.factory.post(path, {'technicianId': self.plumber.id}, format='json')
		force_authenticate(request, user=self.admin)
		response = assign_technician(request, booking_id=self.booking.id)
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'technician_not_qualified')

		request = self.factory.post(path, {'technicianId': self.tech_two.id}, format='json')
		force_authenticate(request, user=self.admin)
		response = assign_technician(request, booking_id=self.booking.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['booking']['status'], 'assigned')

	def test_candidates_api(self):
		request = self.factory.get('/api/bookings/%d/candidates/' % self.booking.id)
		force_authenticate(request, user=self.admin)
		response = assignment_candidates(request, booking_id=self.booking.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual([item['id'] for item in response.data['technicians']], [self.tech_one.id, self.tech_two.id])
		self.assertIsNone(response.data['technicians'][0]['distanceKm'])


class ExceptionHandlerTests(TestCase):
	def test_database_errors_surface_as_503(self):
		response = dependency_aware_exception_handler(DatabaseError('connection refused'), {})

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['error'], 'service_unavailable')
