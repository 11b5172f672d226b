from rest_framework.permissions import BasePermission


class IsDispatchAdmin(BasePermission):
    """
    Allows access only to authenticated back-office users (admin or super_admin).
    Keeps role check logic centralized.
    """
    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) in ("admin", "super_admin")
