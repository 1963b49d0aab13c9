from django.contrib import messages
from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect

from core.roles import STUDENT
from .services import generate_fee_statement_pdf


def _is_staffish(u):
    return u.is_authenticated and (u.is_college_admin or u.is_finance)


@login_required
def my_statement(request):
    if not request.user.is_student:
        messages.error(request, "Only students have a fee statement.")
        return redirect("accounts:dashboard")
    return _statement_response(request.user)


@login_required
def student_statement(request, student_pk: int):
    if not _is_staffish(request.user):
        messages.error(request, "Not allowed.")
        return redirect("accounts:dashboard")
    student = get_object_or_404(get_user_model(), pk=student_pk, role=STUDENT)
    return _statement_response(student)


def _statement_response(student):
    pdf = generate_fee_statement_pdf(student)
    resp = HttpResponse(pdf, content_type="application/pdf")
    resp["Content-Disposition"] = f'attachment; filename="fee_statement_{student.student_number or student.username}.pdf"'
    return resp
