from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User


@admin.register(User)
class DispatchUserAdmin(BaseUserAdmin):
    """Dispatch operators. No groups or per-model permissions; role decides access."""

    list_display = ["username", "display_name", "role", "is_active", "last_login"]
    list_filter = ["role", "is_active"]
    search_fields = ["username", "display_name", "email"]
    ordering = ("username",)
    readonly_fields = ("last_login", "date_joined")

    fieldsets = (
        (None, {"fields": ("username", "password")}),
        ("Profile", {"fields": ("display_name", "email")}),
        ("Access", {"fields": ("role", "is_active", "is_staff")}),
        ("Activity", {"fields": ("last_login", "date_joined")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("username", "password1", "password2", "role", "display_name"),
            },
        ),
    )

    def save_model(self, request, obj, form, change):
        # Every dispatch operator signs in to this site
        if not change:
            obj.is_staff = True
        super().save_model(request, obj, form, change)
