from django.urls import path
from drivers.views import (
    DriverListView,
    AssignableDriverListView,
    DriverAvailabilityView,
    DriverBlockView,
    DriverLocationUpdateView,
)

urlpatterns = [
    path("", DriverListView.as_view(), name="driver-list"),
    path("assignable/", AssignableDriverListView.as_view(), name="driver-assignable"),
    path("<int:driver_id>/availability/", DriverAvailabilityView.as_view(), name="driver-availability"),
    path("<int:driver_id>/block/", DriverBlockView.as_view(), name="driver-block"),
    path("<int:driver_id>/location/", DriverLocationUpdateView.as_view(), name="driver-location"),
]
