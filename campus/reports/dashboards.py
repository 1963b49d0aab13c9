"""
Per-role dashboard figures.

Read-only: every number is recomputed from current rows on each call and
nothing here writes. Missing related rows (a registered subject code with no
catalog entry, a student with no payments) count as zero instead of failing
the whole dashboard.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db.models import Avg, Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce, TruncMonth
from django.utils import timezone

from academics.models import (
    Subject, SubjectEnrollment, TimetableEntry,
    AttendanceSession, AttendanceRecord, Result,
)
from core.roles import ADMIN, FINANCE, LECTURER, STUDENT
from finance.models import Payment
from finance.services import finance_summary_for_student, portfolio_summaries
from registrar.models import Application, Registration

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _money_sum(qs, field="amount"):
    total = Coalesce(Sum(field), Value(ZERO), output_field=DecimalField(max_digits=14, decimal_places=2))
    return qs.aggregate(s=total)["s"].quantize(Decimal("0.01"))


def _today(today):
    return today or timezone.localdate()


def attendance_rate(records) -> float:
    total = records.count()
    if not total:
        return 0.0
    return records.filter(status="present").count() / total


# =============================================================================
# STUDENT
# =============================================================================

def student_dashboard(student, *, today=None):
    today = _today(today)
    registration = Registration.objects.filter(student=student, status=Registration.STATUS_ACTIVE)\
        .select_related("course").first()
    codes = list(registration.subject_codes) if registration else []

    subjects = Subject.objects.filter(code__in=codes)
    total_credits = subjects.aggregate(s=Sum("credits"))["s"] or 0

    results = Result.objects.filter(student=student).select_related("subject").order_by("-year", "-id")
    average = results.aggregate(a=Avg("mark"))["a"]
    if average is not None:
        average = Decimal(str(average)).quantize(Decimal("0.01"))

    todays_classes = TimetableEntry.objects.filter(subject__code__in=codes, day_of_week=today.weekday())\
        .select_related("subject", "lecturer").order_by("start_time")

    applications = Application.objects.filter(student=student)
    has_approved = applications.filter(status=Application.STATUS_APPROVED).exists()

    return {
        "role": STUDENT,
        "registration": registration,
        "enrolled_subjects": len(codes),
        "total_credits": total_credits,
        "average_mark": average,
        "recent_results": list(results[:3]),
        "todays_classes": list(todays_classes),
        "finance": finance_summary_for_student(student),
        "attendance_rate": attendance_rate(AttendanceRecord.objects.filter(student=student)),
        "has_approved_application": has_approved,
        "has_active_registration": registration is not None,
        "needs_application": not has_approved and registration is None,
        "has_applied": applications.exists(),
    }


# =============================================================================
# LECTURER
# =============================================================================

def lecturer_dashboard(lecturer, *, today=None):
    today = _today(today)
    entries = TimetableEntry.objects.filter(lecturer=lecturer)
    subjects = list(Subject.objects.filter(id__in=entries.values("subject_id")).order_by("code"))

    counts = dict(
        SubjectEnrollment.objects.filter(subject__in=subjects)
        .values_list("subject_id")
        .annotate(n=Count("student", distinct=True))
    )
    rows = [{"subject": s, "students": counts.get(s.id, 0)} for s in subjects]

    pending_grades = Result.objects.filter(subject__in=subjects).filter(Q(mark=0) | Q(grade="")).count()
    total_students = SubjectEnrollment.objects.filter(subject__in=subjects).values("student").distinct().count()

    todays_schedule = [
        {"entry": e, "students": counts.get(e.subject_id, 0)}
        for e in entries.filter(day_of_week=today.weekday()).select_related("subject").order_by("start_time")
    ]

    return {
        "role": LECTURER,
        "subjects": rows,
        "active_subjects": len(subjects),
        "total_students": total_students,
        "pending_grades": pending_grades,
        "active_sessions": AttendanceSession.objects.filter(lecturer=lecturer, is_active=True).count(),
        "todays_schedule": todays_schedule,
        "average_attendance": attendance_rate(AttendanceRecord.objects.filter(session__subject__in=subjects)),
    }


# =============================================================================
# ADMIN / FINANCE
# =============================================================================

def _outstanding(summaries):
    owing = [s.outstanding_amount for _, s in summaries if s.outstanding_amount > 0]
    return sum(owing, ZERO), len(owing)


def admin_dashboard():
    User = get_user_model()
    outstanding_total, _ = _outstanding(portfolio_summaries())

    return {
        "role": ADMIN,
        "total_students": User.objects.filter(role=STUDENT).count(),
        "active_staff": User.objects.filter(role__in=[LECTURER, ADMIN, FINANCE], is_active=True).count(),
        "total_subjects": Subject.objects.count(),
        "active_registrations": Registration.objects.filter(status=Registration.STATUS_ACTIVE).count(),
        "pending_applications": Application.objects.filter(status=Application.STATUS_PENDING).count(),
        "total_revenue": _money_sum(Payment.objects.filter(status=Payment.STATUS_APPROVED)),
        "outstanding_total": outstanding_total,
        "pending_payments": Payment.objects.filter(status=Payment.STATUS_PENDING).count(),
    }


def finance_dashboard(*, today=None, months=4):
    today = _today(today)
    approved = Payment.objects.filter(status=Payment.STATUS_APPROVED)
    month_start = today.replace(day=1)

    approved_count = approved.count()
    rejected_count = Payment.objects.filter(status=Payment.STATUS_REJECTED).count()
    decided = approved_count + rejected_count

    outstanding_total, owing_students = _outstanding(portfolio_summaries())

    trend_start = month_start
    for _ in range(months - 1):
        trend_start = (trend_start - timedelta(days=1)).replace(day=1)
    trend = (
        approved.filter(decided_at__date__gte=trend_start)
        .annotate(month=TruncMonth("decided_at"))
        .values("month")
        .annotate(revenue=Sum("amount"))
        .order_by("-month")
    )

    return {
        "role": FINANCE,
        "total_revenue": _money_sum(approved),
        "monthly_revenue": _money_sum(approved.filter(decided_at__date__gte=month_start)),
        "outstanding_total": outstanding_total,
        "students_with_outstanding": owing_students,
        "pending_approvals": Payment.objects.filter(status=Payment.STATUS_PENDING).count(),
        "approval_rate": round(approved_count * 100 / decided, 1) if decided else 0.0,
        "recent_payments": list(Payment.objects.select_related("student").order_by("-submitted_at", "-id")[:10]),
        "monthly_trend": [
            {"month": row["month"], "revenue": Decimal(row["revenue"] or 0).quantize(Decimal("0.01"))}
            for row in trend
        ],
    }


def dashboard_for(user, *, today=None):
    role = getattr(user, "role", "")
    if role == STUDENT:
        return student_dashboard(user, today=today)
    if role == LECTURER:
        return lecturer_dashboard(user, today=today)
    if role == ADMIN:
        return admin_dashboard()
    if role == FINANCE:
        return finance_dashboard(today=today)
    logger.warning("No dashboard for user %s with role %r", getattr(user, "pk", None), role)
    return {"role": role}
