from django.urls import path

from .views import LoginView, RefreshTokenView, MeView

urlpatterns = [
    path("login/", LoginView.as_view(), name="admin-login"),
    path("refresh/", RefreshTokenView.as_view(), name="admin-token-refresh"),
    path("me/", MeView.as_view(), name="admin-me"),
]
