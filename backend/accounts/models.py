from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Back-office user. Every account here operates the dispatch dashboard."""
    ROLE_CHOICES = [
        ('admin', 'Admin'),
        ('super_admin', 'Super Admin'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='admin')
    display_name = models.CharField(max_length=100, blank=True)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"
