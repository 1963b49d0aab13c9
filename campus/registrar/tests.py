from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.urls import reverse

from academics.models import Course, Subject, SubjectEnrollment
from core import exceptions as errors
from registrar import services
from registrar.models import Application, Registration


class RegistrarTestCase(TestCase):
    def setUp(self):
        self.User = get_user_model()
        self.student = self.User.objects.create_user(username="stu1", password="pass1234", role="student")
        self.admin = self.User.objects.create_user(username="admin1", password="pass1234", role="admin")

        self.course = Course.objects.create(code="CS", name="Computer Science", duration_years=3)
        self.cs101 = Subject.objects.create(code="CS101", name="Programming", credits=12, course=self.course, semester="S1")
        self.cs102 = Subject.objects.create(code="CS102", name="Databases", credits=15, course=self.course, semester="S2")
        self.other = Course.objects.create(code="BUS", name="Business")
        Subject.objects.create(code="BUS101", name="Accounting", credits=10, course=self.other)

    def approved_application(self, student=None):
        app = services.submit_application(student or self.student, "CS")
        return services.decide_application(app.id, "approved", "admin", actor=self.admin)


class ApplicationTrackerTests(RegistrarTestCase):
    def test_submit_creates_pending_application(self):
        app = services.submit_application(self.student, "CS")
        self.assertEqual(app.status, "pending")
        self.assertEqual(app.course_code, "CS")
        self.assertIsNotNone(app.academic_year)

    def test_submit_unknown_course_fails_validation(self):
        with self.assertRaises(errors.ValidationError) as ctx:
            services.submit_application(self.student, "NOPE")
        self.assertEqual(ctx.exception.field, "course_code")
        self.assertFalse(Application.objects.exists())

    def test_submit_after_approval_is_duplicate(self):
        self.approved_application()
        with self.assertRaises(errors.DuplicateActiveApplication):
            services.submit_application(self.student, "CS")

    def test_rejected_application_does_not_block_resubmission(self):
        app = services.submit_application(self.student, "CS")
        services.decide_application(app.id, "rejected", "admin", actor=self.admin)
        again = services.submit_application(self.student, "CS")
        self.assertEqual(again.status, "pending")

    def test_decide_requires_admin_role(self):
        app = services.submit_application(self.student, "CS")
        for role in ("student", "finance", "lecturer", ""):
            with self.assertRaises(errors.Unauthorized) as ctx:
                services.decide_application(app.id, "approved", role)
            self.assertEqual(ctx.exception.kind, "unauthorized")
        app.refresh_from_db()
        self.assertEqual(app.status, "pending")

    def test_decide_records_decision_and_notes(self):
        app = services.submit_application(self.student, "CS")
        decided = services.decide_application(app.id, "rejected", "admin", actor=self.admin, notes="Incomplete")
        self.assertEqual(decided.status, "rejected")
        self.assertEqual(decided.decided_by, self.admin)
        self.assertEqual(decided.notes, "Incomplete")
        self.assertIsNotNone(decided.decided_at)

    def test_decided_application_is_immutable(self):
        app = self.approved_application()
        with self.assertRaises(errors.InvalidTransition):
            services.decide_application(app.id, "rejected", "admin")
        app.refresh_from_db()
        self.assertEqual(app.status, "approved")

    def test_invalid_decision_value(self):
        app = services.submit_application(self.student, "CS")
        with self.assertRaises(errors.ValidationError) as ctx:
            services.decide_application(app.id, "maybe", "admin")
        self.assertEqual(ctx.exception.field, "decision")

    def test_second_approval_in_same_cycle_is_duplicate(self):
        first = services.submit_application(self.student, "CS")
        second = services.submit_application(self.student, "CS")
        services.decide_application(first.id, "approved", "admin")
        with self.assertRaises(errors.DuplicateActiveApplication):
            services.decide_application(second.id, "approved", "admin")
        second.refresh_from_db()
        self.assertEqual(second.status, "pending")

    def test_missing_application(self):
        with self.assertRaises(errors.ValidationError) as ctx:
            services.decide_application(999, "approved", "admin")
        self.assertEqual(ctx.exception.field, "application_id")


class RegistrationFinalizerTests(RegistrarTestCase):
    def test_pending_application_is_not_enough(self):
        services.submit_application(self.student, "CS")
        with self.assertRaises(errors.NoApprovedApplication):
            services.finalize_registration(self.student, "CS", 1, ["CS101"])
        self.assertFalse(Registration.objects.exists())

    def test_rejected_application_cannot_finalize(self):
        app = services.submit_application(self.student, "CS")
        services.decide_application(app.id, "rejected", "admin")
        with self.assertRaises(errors.NoApprovedApplication):
            services.finalize_registration(self.student, "CS", 1, ["CS101", "CS102"])
        self.assertFalse(Registration.objects.exists())
        self.assertFalse(SubjectEnrollment.objects.exists())

    def test_approval_for_other_course_does_not_count(self):
        self.approved_application()
        with self.assertRaises(errors.NoApprovedApplication):
            services.finalize_registration(self.student, "BUS", 1, ["BUS101"])

    def test_empty_selection_is_invalid(self):
        self.approved_application()
        with self.assertRaises(errors.InvalidSubjectSelection):
            services.finalize_registration(self.student, "CS", 1, [])
        self.assertFalse(Registration.objects.exists())

    def test_subject_outside_course_catalog_is_invalid(self):
        self.approved_application()
        with self.assertRaises(errors.InvalidSubjectSelection) as ctx:
            services.finalize_registration(self.student, "CS", 1, ["CS101", "BUS101", "XX999"])
        self.assertEqual(ctx.exception.value, ["BUS101", "XX999"])
        self.assertFalse(Registration.objects.exists())

    def test_year_outside_course_duration(self):
        self.approved_application()
        with self.assertRaises(errors.ValidationError) as ctx:
            services.finalize_registration(self.student, "CS", 4, ["CS101"])
        self.assertEqual(ctx.exception.field, "year")

    def test_finalize_creates_registration_and_memberships(self):
        self.approved_application()
        reg = services.finalize_registration(self.student, "CS", "2", ["CS102", "CS101", "CS101"])

        self.assertEqual(reg.status, "active")
        self.assertEqual(reg.year, 2)
        self.assertEqual(reg.subject_codes, ["CS101", "CS102"])
        self.assertEqual(reg.total_credits, 27)
        self.assertEqual(
            set(SubjectEnrollment.objects.filter(student=self.student).values_list("subject__code", flat=True)),
            {"CS101", "CS102"},
        )
        self.assertEqual(reg.missing_codes(), [])

    def test_finalize_twice_with_same_inputs_is_already_registered(self):
        self.approved_application()
        services.finalize_registration(self.student, "CS", 1, ["CS101"])
        with self.assertRaises(errors.AlreadyRegistered):
            services.finalize_registration(self.student, "CS", 1, ["CS101"])
        self.assertEqual(Registration.objects.filter(student=self.student).count(), 1)

    def test_second_finalize_with_other_subjects_leaves_enrollment_unchanged(self):
        self.approved_application()
        reg = services.finalize_registration(self.student, "CS", 1, ["CS101"])
        with self.assertRaises(errors.AlreadyRegistered):
            services.finalize_registration(self.student, "CS", 1, ["CS101", "CS102"])

        reg.refresh_from_db()
        self.assertEqual(reg.subject_codes, ["CS101"])
        self.assertEqual(SubjectEnrollment.objects.filter(student=self.student).count(), 1)

    @override_settings(CAMPUS_CREDIT_POLICY={"min": 20, "max": None})
    def test_credit_minimum_is_policy(self):
        self.approved_application()
        with self.assertRaises(errors.InvalidSubjectSelection):
            services.finalize_registration(self.student, "CS", 1, ["CS101"])
        reg = services.finalize_registration(self.student, "CS", 1, ["CS101", "CS102"])
        self.assertEqual(reg.total_credits, 27)

    @override_settings(CAMPUS_CREDIT_POLICY={"min": None, "max": 20})
    def test_credit_maximum_is_policy(self):
        self.approved_application()
        with self.assertRaises(errors.InvalidSubjectSelection):
            services.finalize_registration(self.student, "CS", 1, ["CS101", "CS102"])


class PartialRegistrationTests(RegistrarTestCase):
    def setUp(self):
        super().setUp()
        self.approved_application()
        self.real_write = services._write_membership

    def _failing_for(self, code):
        def write(registration, subject):
            if subject.code == code:
                raise DatabaseError("store unavailable")
            return self.real_write(registration, subject)
        return write

    def test_failed_membership_reports_partial_registration(self):
        with patch("registrar.services._write_membership", side_effect=self._failing_for("CS102")):
            with self.assertRaises(errors.PartialRegistration) as ctx:
                services.finalize_registration(self.student, "CS", 1, ["CS101", "CS102"])

        reg = Registration.objects.get(student=self.student)
        self.assertEqual(ctx.exception.registration_id, reg.id)
        self.assertEqual(ctx.exception.missing_codes, ["CS102"])
        self.assertEqual(ctx.exception.as_dict()["kind"], "partial_registration")
        self.assertEqual(reg.missing_codes(), ["CS102"])

    def test_retry_writes_only_missing_memberships(self):
        with patch("registrar.services._write_membership", side_effect=self._failing_for("CS102")):
            with self.assertRaises(errors.PartialRegistration):
                services.finalize_registration(self.student, "CS", 1, ["CS101", "CS102"])

        reg = services.retry_enrollments(self.student)
        self.assertEqual(reg.missing_codes(), [])
        self.assertEqual(SubjectEnrollment.objects.filter(student=self.student).count(), 2)

        # repeating is a no-op
        services.retry_enrollments(self.student)
        self.assertEqual(SubjectEnrollment.objects.filter(student=self.student).count(), 2)

    def test_refinalize_resumes_missing_memberships_without_duplicate(self):
        with patch("registrar.services._write_membership", side_effect=self._failing_for("CS101")):
            with self.assertRaises(errors.PartialRegistration):
                services.finalize_registration(self.student, "CS", 1, ["CS101", "CS102"])

        reg = services.finalize_registration(self.student, "CS", 1, ["CS101", "CS102"])
        self.assertEqual(Registration.objects.filter(student=self.student).count(), 1)
        self.assertEqual(reg.missing_codes(), [])

    def test_refinalize_with_other_selection_is_refused(self):
        Subject.objects.create(code="CS103", name="Networks", credits=10, course=self.course)
        with patch("registrar.services._write_membership", side_effect=self._failing_for("CS102")):
            with self.assertRaises(errors.PartialRegistration):
                services.finalize_registration(self.student, "CS", 1, ["CS101", "CS102"])

        for year, codes in ((2, ["CS103"]), (1, ["CS101"]), (2, ["CS101", "CS102"])):
            with self.assertRaises(errors.AlreadyRegistered):
                services.finalize_registration(self.student, "CS", year, codes)

        reg = Registration.objects.get(student=self.student)
        self.assertEqual(reg.subject_codes, ["CS101", "CS102"])
        self.assertEqual(reg.year, 1)
        self.assertEqual(reg.missing_codes(), ["CS102"])

    def test_retry_without_registration(self):
        other = self.User.objects.create_user(username="stu2", password="pass1234", role="student")
        with self.assertRaises(errors.InvalidTransition):
            services.retry_enrollments(other)


class RegistrarViewTests(RegistrarTestCase):
    def test_student_applies(self):
        self.client.force_login(self.student)
        resp = self.client.post(reverse("registrar:apply"), {"course": "CS"})
        self.assertRedirects(resp, reverse("registrar:my_applications"), fetch_redirect_response=False)
        self.assertTrue(Application.objects.filter(student=self.student, status="pending").exists())

    def test_admin_decides_from_queue(self):
        app = services.submit_application(self.student, "CS")
        self.client.force_login(self.admin)
        resp = self.client.post(reverse("registrar:decide", args=[app.id]), {"decision": "approved"})
        self.assertEqual(resp.status_code, 302)
        app.refresh_from_db()
        self.assertEqual(app.status, "approved")
        self.assertEqual(app.decided_by, self.admin)

    def test_student_cannot_decide(self):
        app = services.submit_application(self.student, "CS")
        self.client.force_login(self.student)
        self.client.post(reverse("registrar:decide", args=[app.id]), {"decision": "approved"})
        app.refresh_from_db()
        self.assertEqual(app.status, "pending")

    def test_finalize_page_without_approval(self):
        self.client.force_login(self.student)
        resp = self.client.get(reverse("registrar:finalize"))
        self.assertContains(resp, "No approved application found yet.")

    def test_student_finalizes(self):
        self.approved_application()
        self.client.force_login(self.student)
        resp = self.client.post(reverse("registrar:finalize"), {"year": "1", "subjects": ["CS101", "CS102"]})
        self.assertRedirects(resp, reverse("accounts:dashboard"), fetch_redirect_response=False)
        reg = Registration.objects.get(student=self.student)
        self.assertEqual(reg.subject_codes, ["CS101", "CS102"])

    def test_finalize_with_no_subjects_shows_error(self):
        self.approved_application()
        self.client.force_login(self.student)
        resp = self.client.post(reverse("registrar:finalize"), {"year": "1"})
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "Select at least one subject.")
        self.assertFalse(Registration.objects.exists())
