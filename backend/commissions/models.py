from django.conf import settings
from django.db import models


class CommissionSetting(models.Model):
    """The platform's current commission percentage (one row per key)."""
    COMMISSION_KEY = 'commission'

    key = models.CharField(max_length=50, unique=True, default=COMMISSION_KEY)
    percentage = models.DecimalField(max_digits=5, decimal_places=2)
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta:
        db_table = 'commission_settings'

    def __str__(self):
        return f"{self.key}: {self.percentage}%"


class CommissionRateChange(models.Model):
    """Audit trail of admin commission updates."""
    old_rate = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    new_rate = models.DecimalField(max_digits=5, decimal_places=2)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='commission_changes'
    )
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'commission_rate_changes'
        ordering = ['-changed_at', '-id']

    def __str__(self):
        return f"{self.old_rate} -> {self.new_rate} at {self.changed_at:%Y-%m-%d %H:%M}"
