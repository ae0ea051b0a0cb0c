from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Extended user model with role selection"""
    ROLE_CUSTOMER = 'customer'
    ROLE_TECHNICIAN = 'technician'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = [
        (ROLE_CUSTOMER, 'Customer'),
        (ROLE_TECHNICIAN, 'Technician'),
        (ROLE_ADMIN, 'Administrator'),
    ]

    # Role & basic info
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CUSTOMER)
    phone_number = models.CharField(max_length=15, blank=True)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def display_name(self):
        return self.get_full_name() or self.username
