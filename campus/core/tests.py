from datetime import date

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase, TestCase
from django.urls import reverse

from core import exceptions as errors
from core.models import AcademicYear
from core.roles import ensure_role, role_of


class ExceptionTests(SimpleTestCase):
    def test_as_dict_carries_field_and_value(self):
        exc = errors.InvalidSubjectSelection("Unknown subjects: XX1", field="subject_codes", value=["XX1"])
        self.assertEqual(exc.as_dict(), {
            "kind": "invalid_subject_selection",
            "field": "subject_codes",
            "value": ["XX1"],
            "message": "Unknown subjects: XX1",
        })
        self.assertEqual(str(exc), "Unknown subjects: XX1")

    def test_partial_registration_lists_missing_codes(self):
        exc = errors.PartialRegistration("2 memberships missing", registration_id=7, missing_codes=("CS101", "CS102"))
        data = exc.as_dict()
        self.assertEqual(data["kind"], "partial_registration")
        self.assertEqual(data["registration_id"], 7)
        self.assertEqual(data["missing_codes"], ["CS101", "CS102"])
        self.assertIsInstance(exc, errors.LifecycleError)


class RoleTests(SimpleTestCase):
    def test_matching_role_passes(self):
        ensure_role("finance", "finance", "decide payments")

    def test_other_roles_are_refused(self):
        for role in ("admin", "student", "", "FINANCE"):
            with self.assertRaises(errors.Unauthorized) as ctx:
                ensure_role(role, "finance", "decide payments")
            self.assertEqual(ctx.exception.field, "actor_role")
            self.assertEqual(ctx.exception.value, role)

    def test_role_of_anonymous(self):
        self.assertEqual(role_of(AnonymousUser()), "")


class AcademicYearTests(TestCase):
    def test_current_creates_calendar_year_once(self):
        first = AcademicYear.current()
        second = AcademicYear.current()
        self.assertEqual(first.pk, second.pk)
        self.assertTrue(first.is_current)
        self.assertEqual(AcademicYear.objects.count(), 1)

    def test_current_prefers_flagged_year(self):
        flagged = AcademicYear.objects.create(
            name="2030", start_date=date(2030, 2, 1), end_date=date(2030, 11, 30), is_current=True
        )
        self.assertEqual(AcademicYear.current(), flagged)


class AcademicYearAdminTests(TestCase):
    def test_make_current_switches_the_flag(self):
        old = AcademicYear.objects.create(name="2029", start_date=date(2029, 1, 1), end_date=date(2029, 12, 31), is_current=True)
        new = AcademicYear.objects.create(name="2030", start_date=date(2030, 1, 1), end_date=date(2030, 12, 31))
        admin_user = get_user_model().objects.create_superuser(username="root", password="pass1234", email="root@x.test")
        self.client.force_login(admin_user)
        self.client.post(
            reverse("admin:core_academicyear_changelist"),
            {"action": "make_current", "_selected_action": [new.pk]},
        )
        old.refresh_from_db()
        new.refresh_from_db()
        self.assertFalse(old.is_current)
        self.assertTrue(new.is_current)
        self.assertEqual(AcademicYear.current(), new)
