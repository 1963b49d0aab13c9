"""
Admissions and registration lifecycle.

An application moves pending -> approved/rejected exactly once, by an admin.
An approved application lets the student finalize a registration for one
course and year with a subject selection. The registration row and its subject
memberships are written as a best-effort sequence: when membership writes fail
the caller gets ``PartialRegistration`` and retries the memberships only.
"""

import logging

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from academics.models import Course, Subject, SubjectEnrollment
from core import exceptions as errors
from core.models import AcademicYear
from core.roles import ADMIN, ensure_role
from .models import Application, Registration

logger = logging.getLogger(__name__)

DECISIONS = (Application.STATUS_APPROVED, Application.STATUS_REJECTED)


# =============================================================================
# APPLICATIONS
# =============================================================================

def submit_application(student, course_code: str, *, academic_year=None) -> Application:
    code = (course_code or "").strip()
    course = Course.objects.filter(code=code).first()
    if course is None:
        raise errors.ValidationError(f"Unknown course '{code}'.", field="course_code", value=code)

    cycle = academic_year or AcademicYear.current()

    if Application.objects.filter(
        student=student, course=course, academic_year=cycle, status=Application.STATUS_APPROVED
    ).exists():
        raise errors.DuplicateActiveApplication(
            f"An approved application for {course.code} already exists for {cycle}.",
            field="course_code",
            value=course.code,
        )

    app = Application.objects.create(student=student, course=course, academic_year=cycle)
    logger.info("Application %s submitted by student %s for %s (%s)", app.pk, student.pk, course.code, cycle)
    return app


def decide_application(application_id, decision: str, actor_role: str, *, actor=None, notes: str = "") -> Application:
    ensure_role(actor_role, ADMIN, "decide applications")

    if decision not in DECISIONS:
        raise errors.ValidationError(f"Invalid decision '{decision}'.", field="decision", value=decision)

    app = Application.objects.select_related("course", "academic_year").filter(pk=application_id).first()
    if app is None:
        raise errors.ValidationError(
            f"Application {application_id} not found.", field="application_id", value=application_id
        )

    if app.status != Application.STATUS_PENDING:
        raise errors.InvalidTransition(
            f"Application {app.pk} is already {app.status}.", field="status", value=app.status
        )

    if decision == Application.STATUS_APPROVED and Application.objects.filter(
        student_id=app.student_id,
        course_id=app.course_id,
        academic_year_id=app.academic_year_id,
        status=Application.STATUS_APPROVED,
    ).exclude(pk=app.pk).exists():
        raise errors.DuplicateActiveApplication(
            f"Student already holds an approved application for {app.course.code}.",
            field="application_id",
            value=app.pk,
        )

    # compare-and-set on the pending state so two deciders cannot both win
    try:
        with transaction.atomic():
            updated = Application.objects.filter(pk=app.pk, status=Application.STATUS_PENDING).update(
                status=decision,
                decided_at=timezone.now(),
                decided_by=actor,
                notes=notes or "",
            )
    except IntegrityError:
        raise errors.DuplicateActiveApplication(
            f"Student already holds an approved application for {app.course.code}.",
            field="application_id",
            value=app.pk,
        )

    if not updated:
        app.refresh_from_db(fields=["status"])
        raise errors.InvalidTransition(
            f"Application {app.pk} is already {app.status}.", field="status", value=app.status
        )

    app.refresh_from_db()
    logger.info("Application %s %s by %s", app.pk, decision, getattr(actor, "pk", actor_role))
    return app


def applications_for_student(student):
    return Application.objects.filter(student=student).select_related("course", "academic_year")


def pending_applications():
    return Application.objects.filter(status=Application.STATUS_PENDING)\
        .select_related("student", "course", "academic_year").order_by("submitted_at")


# =============================================================================
# REGISTRATION
# =============================================================================

def registration_for_student(student):
    return Registration.objects.filter(student=student, status=Registration.STATUS_ACTIVE)\
        .select_related("course").first()


def _normalize_codes(codes):
    return sorted({(c or "").strip() for c in (codes or []) if (c or "").strip()})


def _check_credit_policy(total_credits: int):
    policy = getattr(settings, "CAMPUS_CREDIT_POLICY", None) or {}
    low, high = policy.get("min"), policy.get("max")
    if low is not None and total_credits < low:
        raise errors.InvalidSubjectSelection(
            f"Selected load of {total_credits} credits is below the minimum of {low}.",
            field="selected_subject_codes",
            value=total_credits,
        )
    if high is not None and total_credits > high:
        raise errors.InvalidSubjectSelection(
            f"Selected load of {total_credits} credits exceeds the maximum of {high}.",
            field="selected_subject_codes",
            value=total_credits,
        )


def _same_selection(registration, course_code, year, codes) -> bool:
    try:
        year = int(year)
    except (TypeError, ValueError):
        return False
    return (
        registration.course.code == course_code
        and registration.year == year
        and list(registration.subject_codes) == _normalize_codes(codes)
    )


def finalize_registration(student, course_code: str, year, selected_subject_codes) -> Registration:
    code = (course_code or "").strip()

    # always re-read: the decision must be durable before we act on it
    approved = Application.objects.select_related("course").filter(
        student=student, course__code=code, status=Application.STATUS_APPROVED
    ).order_by("-decided_at").first()
    if approved is None:
        raise errors.NoApprovedApplication(
            f"No approved application for {code}.", field="course_code", value=code
        )

    existing = registration_for_student(student)
    if existing is not None:
        if existing.missing_codes() and _same_selection(existing, code, year, selected_subject_codes):
            logger.info("Resuming memberships for registration %s", existing.pk)
            return write_memberships(existing)
        raise errors.AlreadyRegistered(
            f"Student already holds active registration {existing.pk}.",
            field="student",
            value=student.pk,
        )

    codes = _normalize_codes(selected_subject_codes)
    if not codes:
        raise errors.InvalidSubjectSelection(
            "Select at least one subject.", field="selected_subject_codes", value=[]
        )

    course = approved.course
    catalog = {s.code: s for s in Subject.objects.filter(course=course, code__in=codes)}
    unknown = [c for c in codes if c not in catalog]
    if unknown:
        raise errors.InvalidSubjectSelection(
            f"Not offered by {course.code}: {', '.join(unknown)}.",
            field="selected_subject_codes",
            value=unknown,
        )

    try:
        year = int(year)
    except (TypeError, ValueError):
        raise errors.ValidationError(f"Invalid year '{year}'.", field="year", value=year)
    if not 1 <= year <= course.duration_years:
        raise errors.ValidationError(
            f"Year must be between 1 and {course.duration_years}.", field="year", value=year
        )

    _check_credit_policy(sum(s.credits for s in catalog.values()))

    try:
        with transaction.atomic():
            registration = Registration.objects.create(
                student=student,
                course=course,
                application=approved,
                year=year,
                subject_codes=codes,
            )
    except IntegrityError:
        raise errors.AlreadyRegistered(
            "Student already holds an active registration.", field="student", value=student.pk
        )

    logger.info(
        "Registration %s created for student %s: %s year %s, subjects %s",
        registration.pk, student.pk, course.code, year, ",".join(codes),
    )
    return write_memberships(registration)


def _write_membership(registration, subject):
    with transaction.atomic():
        SubjectEnrollment.objects.get_or_create(
            student_id=registration.student_id,
            subject=subject,
            defaults={"registration": registration},
        )


def write_memberships(registration) -> Registration:
    """
    Write one subject membership per selected code. Safe to repeat: existing
    memberships are left as they are.
    """
    subjects = {s.code: s for s in Subject.objects.filter(code__in=registration.subject_codes)}
    failed = []
    for code in registration.subject_codes:
        subject = subjects.get(code)
        if subject is None:
            failed.append(code)
            continue
        try:
            _write_membership(registration, subject)
        except DatabaseError as e:
            logger.warning("Membership %s for registration %s failed: %s", code, registration.pk, e)
            failed.append(code)

    if failed:
        logger.warning("Registration %s is partial; missing %s", registration.pk, ",".join(failed))
        raise errors.PartialRegistration(
            f"Registration saved but {len(failed)} subject enrollment(s) failed; retry enrollment.",
            registration_id=registration.pk,
            missing_codes=failed,
        )
    return registration


def retry_enrollments(student) -> Registration:
    registration = registration_for_student(student)
    if registration is None:
        raise errors.InvalidTransition(
            "No active registration to complete.", field="student", value=student.pk
        )
    return write_memberships(registration)
