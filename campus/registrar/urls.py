from django.urls import path
from .views import (
    my_applications,
    apply,
    applications_queue,
    decide,
    finalize,
    retry_enrollment,
)

app_name = "registrar"

urlpatterns = [
    path("", my_applications, name="my_applications"),
    path("apply/", apply, name="apply"),
    path("queue/", applications_queue, name="applications_queue"),
    path("application/<int:app_id>/decide/", decide, name="decide"),
    path("finalize/", finalize, name="finalize"),
    path("finalize/retry/", retry_enrollment, name="retry_enrollment"),
]
