from django.urls import path
from .views import (
    my_fees,
    submit_payment,
    verification_queue,
    decide_payment,
)

app_name = "finance"

urlpatterns = [
    path("my-fees/", my_fees, name="my_fees"),
    path("my-fees/pay/", submit_payment, name="submit_payment"),

    # finance staff pages
    path("verify/", verification_queue, name="verification_queue"),
    path("verify/<int:payment_id>/decide/", decide_payment, name="decide_payment"),
]
