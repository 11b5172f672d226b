from django.contrib import admin

from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "phone", "email", "is_blocked", "is_verified", "created_at"]
    list_filter = ["is_blocked", "is_verified"]
    search_fields = ["name", "phone", "email"]
    readonly_fields = ["created_at", "updated_at", "last_login_at"]
