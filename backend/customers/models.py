from django.db import models


class Customer(models.Model):
    """Person who places orders. Read-only for the order lifecycle."""

    name = models.CharField(max_length=120, blank=True)
    phone = models.CharField(max_length=20, unique=True)
    email = models.EmailField(blank=True)

    is_blocked = models.BooleanField(default=False)
    is_verified = models.BooleanField(default=False)
    last_login_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'customers'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name or 'Customer'} ({self.phone})"
