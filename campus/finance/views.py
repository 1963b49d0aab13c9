from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.files.storage import default_storage
from django.shortcuts import redirect, render
from django.views.decorators.http import require_http_methods

from core.exceptions import LifecycleError
from core.roles import role_of
from .forms import SubmitPaymentForm, PaymentDecisionForm
from .models import Payment
from . import services


def _is_finance(u):
    return u.is_authenticated and u.is_finance


@login_required
def my_fees(request):
    if not request.user.is_student:
        return redirect("finance:verification_queue")

    payments = Payment.objects.filter(student=request.user).order_by("-submitted_at")
    summary = services.finance_summary_for_student(request.user)

    return render(
        request,
        "finance/my_fees.html",
        {
            "payments": payments[:200],
            "summary": summary,
            "pending_count": payments.filter(status=Payment.STATUS_PENDING).count(),
        },
    )


@login_required
@require_http_methods(["GET", "POST"])
def submit_payment(request):
    if not request.user.is_student:
        messages.error(request, "Only students can submit payments.")
        return redirect("accounts:dashboard")

    form = SubmitPaymentForm(request.POST or None, request.FILES or None)
    if request.method == "POST" and form.is_valid():
        proof_ref = None
        upload = form.cleaned_data.get("proof")
        if upload:
            proof_ref = default_storage.save(f"payment_proofs/{request.user.pk}/{upload.name}", upload)

        try:
            services.submit_payment(
                request.user,
                form.cleaned_data["amount"],
                form.cleaned_data["type"],
                form.cleaned_data.get("description") or "",
                proof_ref=proof_ref,
            )
        except LifecycleError as e:
            if proof_ref:
                default_storage.delete(proof_ref)
            messages.error(request, e.message)
            return render(request, "finance/submit_payment.html", {"form": form})

        messages.success(request, "Payment submitted. Awaiting verification.")
        return redirect("finance:my_fees")

    return render(request, "finance/submit_payment.html", {"form": form})


@login_required
def verification_queue(request):
    if not _is_finance(request.user):
        messages.error(request, "Not allowed.")
        return redirect("accounts:dashboard")

    q = (request.GET.get("q") or "").strip()

    payments = services.pending_payments()
    if q:
        payments = payments.filter(
            student__student_number__icontains=q
        ) | payments.filter(
            student__last_name__icontains=q
        )

    return render(request, "finance/verification_queue.html", {
        "payments": payments[:300],
        "q": q,
        "decision_form": PaymentDecisionForm(),
    })


@login_required
@require_http_methods(["POST"])
def decide_payment(request, payment_id: int):
    form = PaymentDecisionForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Fix the form errors.")
        return redirect("finance:verification_queue")

    try:
        payment = services.decide_payment(
            payment_id, form.cleaned_data["decision"], role_of(request.user), actor=request.user
        )
    except LifecycleError as e:
        messages.error(request, e.message)
        return redirect("finance:verification_queue")

    messages.success(request, f"Payment #{payment.id} {payment.status}.")
    return redirect("finance:verification_queue")
