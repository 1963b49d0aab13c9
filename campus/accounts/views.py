from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect, render
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_http_methods

from reports.dashboards import dashboard_for


def _next_url(request):
    target = request.POST.get("next") or request.GET.get("next") or ""
    if target and url_has_allowed_host_and_scheme(target, allowed_hosts={request.get_host()}):
        return target
    return None


@require_http_methods(["GET", "POST"])
def login_view(request):
    if request.user.is_authenticated:
        return redirect("accounts:dashboard")

    error = None
    if request.method == "POST":
        username = request.POST.get("username", "").strip()
        password = request.POST.get("password", "")
        user = authenticate(request, username=username, password=password)
        if user:
            login(request, user)
            return redirect(_next_url(request) or "accounts:dashboard")
        error = "Invalid username/password."
    return render(request, "accounts/login.html", {"error": error, "next": _next_url(request) or ""})


def logout_view(request):
    logout(request)
    return redirect("accounts:login")


@login_required
def dashboard(request):
    # every figure is recomputed per request
    return render(request, "accounts/dashboard.html", dashboard_for(request.user))
