from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect, render
from django.views.decorators.http import require_http_methods

from core.exceptions import LifecycleError, PartialRegistration
from core.roles import role_of
from .forms import ApplicationForm, DecisionForm, FinalizeRegistrationForm
from .models import Application
from . import services

def _is_admin(u):
    return u.is_authenticated and u.is_college_admin

@login_required
def my_applications(request):
    if not request.user.is_student:
        return redirect("registrar:applications_queue")

    apps = services.applications_for_student(request.user)
    registration = services.registration_for_student(request.user)
    return render(request, "registrar/my_applications.html", {
        "apps": apps,
        "registration": registration,
        "can_finalize": registration is None and apps.filter(status=Application.STATUS_APPROVED).exists(),
    })

@login_required
@require_http_methods(["GET", "POST"])
def apply(request):
    if not request.user.is_student:
        messages.error(request, "Only students can apply for a course.")
        return redirect("accounts:dashboard")

    form = ApplicationForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            services.submit_application(request.user, form.cleaned_data["course"].code)
        except LifecycleError as e:
            messages.error(request, e.message)
            return render(request, "registrar/apply.html", {"form": form})
        messages.success(request, "Application submitted.")
        return redirect("registrar:my_applications")
    return render(request, "registrar/apply.html", {"form": form})

@login_required
def applications_queue(request):
    if not _is_admin(request.user):
        messages.error(request, "Not allowed.")
        return redirect("accounts:dashboard")

    status = (request.GET.get("status") or Application.STATUS_PENDING).strip()
    qs = Application.objects.select_related("student", "course", "academic_year").order_by("-submitted_at")
    if status != "all":
        qs = qs.filter(status=status)

    return render(request, "registrar/applications_queue.html", {
        "apps": qs[:250],
        "status": status,
        "decision_form": DecisionForm(),
    })

@login_required
@require_http_methods(["POST"])
def decide(request, app_id: int):
    form = DecisionForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Fix the form errors.")
        return redirect("registrar:applications_queue")

    try:
        app = services.decide_application(
            app_id,
            form.cleaned_data["decision"],
            role_of(request.user),
            actor=request.user,
            notes=form.cleaned_data.get("notes") or "",
        )
    except LifecycleError as e:
        messages.error(request, e.message)
        return redirect("registrar:applications_queue")

    messages.success(request, f"Application #{app.id} {app.status}.")
    return redirect("registrar:applications_queue")

@login_required
@require_http_methods(["GET", "POST"])
def finalize(request):
    if not request.user.is_student:
        return redirect("accounts:dashboard")

    approved = services.applications_for_student(request.user)\
        .filter(status=Application.STATUS_APPROVED).order_by("-decided_at").first()
    if approved is None:
        return render(request, "registrar/finalize.html", {"note": "No approved application found yet."})

    form = FinalizeRegistrationForm(request.POST or None, course=approved.course)
    if request.method == "POST" and form.is_valid():
        try:
            services.finalize_registration(
                request.user,
                approved.course.code,
                form.cleaned_data["year"],
                form.cleaned_data["subjects"],
            )
        except PartialRegistration as e:
            messages.warning(request, e.message)
            return redirect("registrar:my_applications")
        except LifecycleError as e:
            messages.error(request, e.message)
            return render(request, "registrar/finalize.html", {"form": form, "application": approved})
        messages.success(request, "Registration finalized. You can now access your portal.")
        return redirect("accounts:dashboard")

    return render(request, "registrar/finalize.html", {"form": form, "application": approved})

@login_required
@require_http_methods(["POST"])
def retry_enrollment(request):
    try:
        services.retry_enrollments(request.user)
    except LifecycleError as e:
        messages.error(request, e.message)
    else:
        messages.success(request, "Subject enrollment completed.")
    return redirect("registrar:my_applications")
