from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from core.roles import role_of


class UserRoleTests(TestCase):
    def setUp(self):
        self.User = get_user_model()

    def test_default_role_is_student(self):
        user = self.User.objects.create_user(username="stu1", password="pass1234")
        self.assertTrue(user.is_student)
        self.assertFalse(user.is_finance)
        self.assertEqual(role_of(user), "student")

    def test_role_properties(self):
        lecturer = self.User.objects.create_user(username="lec1", password="pass1234", role="lecturer")
        admin = self.User.objects.create_user(username="adm1", password="pass1234", role="admin")
        finance = self.User.objects.create_user(username="fin1", password="pass1234", role="finance")
        self.assertTrue(lecturer.is_lecturer)
        self.assertTrue(admin.is_college_admin)
        self.assertFalse(admin.is_finance)
        self.assertTrue(finance.is_finance)
        self.assertEqual(finance.primary_role(), "finance")

    def test_str_prefers_full_name(self):
        user = self.User.objects.create_user(username="stu1", first_name="Thandi", last_name="Nkosi")
        self.assertEqual(str(user), "Thandi Nkosi (stu1)")


class LoginViewTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="stu1", password="pass1234", role="student")

    def test_dashboard_requires_login(self):
        resp = self.client.get(reverse("accounts:dashboard"))
        self.assertEqual(resp.status_code, 302)
        self.assertIn(reverse("accounts:login"), resp["Location"])

    def test_login_redirects_to_dashboard(self):
        resp = self.client.post(reverse("accounts:login"), {"username": "stu1", "password": "pass1234"})
        self.assertRedirects(resp, reverse("accounts:dashboard"))

    def test_bad_password(self):
        resp = self.client.post(reverse("accounts:login"), {"username": "stu1", "password": "nope"})
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "Invalid username/password.")

    def test_logout(self):
        self.client.force_login(self.user)
        resp = self.client.get(reverse("accounts:logout"))
        self.assertRedirects(resp, reverse("accounts:login"))

    def test_login_honours_next(self):
        target = reverse("finance:my_fees")
        resp = self.client.post(reverse("accounts:login"), {"username": "stu1", "password": "pass1234", "next": target})
        self.assertRedirects(resp, target, fetch_redirect_response=False)

    def test_login_ignores_offsite_next(self):
        resp = self.client.post(
            reverse("accounts:login"), {"username": "stu1", "password": "pass1234", "next": "https://elsewhere.test/"}
        )
        self.assertRedirects(resp, reverse("accounts:dashboard"))
