from decimal import Decimal

from django.test import TestCase, override_settings
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from common.caller import Caller
from commissions.models import CommissionRateChange, CommissionSetting
from commissions.views import CommissionHistoryView, CommissionRateView
from services.commission import get_commission_percentage, resolve_commission, update_commission_rate
from services.job_management.exceptions import InvalidAmountError, InvalidCommissionRateError


def set_stored_rate(percentage):
	CommissionSetting.objects.update_or_create(
		key=CommissionSetting.COMMISSION_KEY,
		defaults={'percentage': Decimal(str(percentage))},
	)


class ResolveCommissionTests(TestCase):
	def setUp(self):
		set_stored_rate(30)

	def test_round_split(self):
		split = resolve_commission(1000)

		self.assertEqual(split.admin_commission, Decimal('300'))
		self.assertEqual(split.technician_earnings, Decimal('700'))
		self.assertEqual(split.percentage_used, Decimal('30'))
		self.assertEqual(split.as_dict(), {
			'totalAmount': 1000,
			'technicianEarnings': 700,
			'adminCommission': 300,
			'commissionPercentage': 30,
		})

	def test_admin_share_rounds_half_up(self):
		# 299.7 -> 300
		split = resolve_commission(999)
		self.assertEqual(split.admin_commission, Decimal('300'))
		self.assertEqual(split.technician_earnings, Decimal('699'))

		# 1.5 -> 2
		split = resolve_commission('5')
		self.assertEqual(split.admin_commission, Decimal('2'))
		self.assertEqual(split.technician_earnings, Decimal('3'))

	def test_zero_total(self):
		split = resolve_commission(0)

		self.assertEqual(split.admin_commission, Decimal('0'))
		self.assertEqual(split.technician_earnings, Decimal('0'))

	def test_parts_always_sum_to_total(self):
		for total in (1, 7, 33, 99.99, '149.50', 1234, 100001):
			for pct in (0, 12.5, 30, 33, 100):
				split = resolve_commission(total, percentage=pct)
				self.assertEqual(split.technician_earnings + split.admin_commission, split.total_amount)
				self.assertGreaterEqual(split.technician_earnings, 0)

	def test_admin_share_never_exceeds_fractional_total(self):
		# 0.54 rounds up to 1, more than the booking is worth
		split = resolve_commission(Decimal('0.60'), percentage=90)
		self.assertEqual(split.admin_commission, Decimal('0.60'))
		self.assertEqual(split.technician_earnings, Decimal('0'))

		split = resolve_commission('99.99', percentage=100)
		self.assertEqual(split.admin_commission, Decimal('99.99'))
		self.assertEqual(split.technician_earnings, Decimal('0'))

	def test_explicit_percentage_wins(self):
		split = resolve_commission(1000, percentage=25)

		self.assertEqual(split.admin_commission, Decimal('250'))
		self.assertEqual(split.percentage_used, Decimal('25'))

	@override_settings(DEFAULT_COMMISSION_PERCENTAGE=30)
	def test_missing_setting_uses_default(self):
		CommissionSetting.objects.all().delete()

		self.assertEqual(get_commission_percentage(), Decimal('30'))
		self.assertEqual(resolve_commission(1000).admin_commission, Decimal('300'))

	@override_settings(DEFAULT_COMMISSION_PERCENTAGE=30)
	def test_out_of_range_stored_rate_uses_default(self):
		for stored in (150, -5):
			set_stored_rate(stored)
			with self.assertLogs('services.commission.resolver', level='WARNING'):
				self.assertEqual(get_commission_percentage(), Decimal('30'))

	def test_invalid_amounts(self):
		for amount in (None, 'abc', '', -1, '-0.01', float('nan'), float('inf'), True):
			with self.assertRaises(InvalidAmountError, msg=repr(amount)):
				resolve_commission(amount)


class CommissionRateUpdateTests(TestCase):
	def setUp(self):
		self.admin = User.objects.create_user(username='ops', password='admin12345', role='admin')
		self.caller = Caller.from_user(self.admin)

	def test_update_records_history(self):
		update_commission_rate(self.caller, 25)
		update_commission_rate(self.caller, Decimal('27.5'))

		self.assertEqual(get_commission_percentage(), Decimal('27.5'))

		changes = list(CommissionRateChange.objects.order_by('id'))
		self.assertEqual(len(changes), 2)
		self.assertIsNone(changes[0].old_rate)
		self.assertEqual(changes[0].new_rate, Decimal('25'))
		self.assertEqual(changes[1].old_rate, Decimal('25'))
		self.assertEqual(changes[1].changed_by, self.admin)

	def test_out_of_range_rate_rejected(self):
		for rate in (101, -1, 'ten', True):
			with self.assertRaises(InvalidCommissionRateError):
				update_commission_rate(self.caller, rate)

		self.assertFalse(CommissionRateChange.objects.exists())

	def test_new_rate_applies_to_later_splits(self):
		update_commission_rate(self.caller, 10)

		self.assertEqual(resolve_commission(1000).admin_commission, Decimal('100'))

	def test_rate_is_stored_with_two_decimals(self):
		setting = update_commission_rate(self.caller, '33.335')

		self.assertEqual(setting.percentage, Decimal('33.34'))
		setting.refresh_from_db()
		self.assertEqual(setting.percentage, Decimal('33.34'))
		self.assertEqual(CommissionRateChange.objects.get().new_rate, Decimal('33.34'))
		self.assertEqual(get_commission_percentage(), Decimal('33.34'))


class CommissionApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.admin = User.objects.create_user(username='ops', password='admin12345', role='admin')
		self.technician = User.objects.create_user(username='fixer', password='tech12345', role='technician')
		set_stored_rate(30)

	def post_rate(self, user, rate):
		request = self.factory.post('/api/admin/settings/commission/', {'rate': rate}, format='json')
		force_authenticate(request, user=user)
		return CommissionRateView.as_view()(request)

	def test_anyone_signed_in_can_read_rate(self):
		request = self.factory.get('/api/admin/settings/commission/')
		force_authenticate(request, user=self.technician)
		response = CommissionRateView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['commissionRate'], Decimal('30'))

	def test_technician_cannot_change_rate(self):
		response = self.post_rate(self.technician, 10)

		self.assertEqual(response.status_code, 403)
		self.assertEqual(get_commission_percentage(), Decimal('30'))

	def test_admin_changes_rate(self):
		response = self.post_rate(self.admin, 20)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(get_commission_percentage(), Decimal('20'))

	def test_admin_out_of_range_rate(self):
		response = self.post_rate(self.admin, 101)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'invalid_commission_rate')

	def test_history_is_admin_only(self):
		self.post_rate(self.admin, 20)

		request = self.factory.get('/api/admin/settings/commission/history/')
		force_authenticate(request, user=self.technician)
		self.assertEqual(CommissionHistoryView.as_view()(request).status_code, 403)

		request = self.factory.get('/api/admin/settings/commission/history/', {'limit': 5})
		force_authenticate(request, user=self.admin)
		response = CommissionHistoryView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(response.data['history']), 1)
		self.assertEqual(response.data['history'][0]['changedBy'], self.admin.display_name)
