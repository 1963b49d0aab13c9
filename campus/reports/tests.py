import re
from datetime import time, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from academics.models import (
    Course, Subject, SubjectEnrollment, TimetableEntry,
    AttendanceSession, AttendanceRecord, Result,
)
from core.models import AcademicYear
from finance import services as ledger
from registrar import services as registrar
from registrar.models import Application, Registration
from reports import dashboards
from reports.services import generate_fee_statement_pdf


class DashboardTestCase(TestCase):
    def setUp(self):
        self.User = get_user_model()
        self.today = timezone.localdate()
        self.student = self.User.objects.create_user(username="stu1", password="pass1234", role="student", first_name="Thandi")
        self.lecturer = self.User.objects.create_user(username="lec1", password="pass1234", role="lecturer")
        self.admin = self.User.objects.create_user(username="adm1", password="pass1234", role="admin")
        self.finance = self.User.objects.create_user(username="fin1", password="pass1234", role="finance")

        self.course = Course.objects.create(code="CS", name="Computer Science")
        self.cs101 = Subject.objects.create(code="CS101", name="Programming", credits=12, course=self.course)
        self.cs102 = Subject.objects.create(code="CS102", name="Databases", credits=15, course=self.course)
        self.cs103 = Subject.objects.create(code="CS103", name="Networks", credits=10, course=self.course)

    def register(self, student, codes):
        app = registrar.submit_application(student, "CS")
        registrar.decide_application(app.id, "approved", "admin")
        return registrar.finalize_registration(student, "CS", 1, codes)

    def pay(self, student, amount, decision="approved"):
        p = ledger.submit_payment(student, amount, "tuition")
        if decision:
            ledger.decide_payment(p.id, decision, "finance")
        return p


class StudentDashboardTests(DashboardTestCase):
    def test_new_student_needs_application(self):
        data = dashboards.student_dashboard(self.student, today=self.today)
        self.assertTrue(data["needs_application"])
        self.assertFalse(data["has_applied"])
        self.assertEqual(data["enrolled_subjects"], 0)
        self.assertEqual(data["attendance_rate"], 0.0)
        self.assertIsNone(data["average_mark"])
        self.assertEqual(data["finance"].outstanding_amount, Decimal("45000.00"))

    def test_registered_student_figures(self):
        self.register(self.student, ["CS101", "CS102"])
        self.pay(self.student, "15000")
        self.pay(self.student, "5000", decision=None)

        Result.objects.create(student=self.student, subject=self.cs101, mark=Decimal("60"), grade="C", semester="S1")
        Result.objects.create(student=self.student, subject=self.cs102, mark=Decimal("80"), grade="A", semester="S1")

        session = AttendanceSession.objects.create(subject=self.cs101, lecturer=self.lecturer)
        session2 = AttendanceSession.objects.create(subject=self.cs102, lecturer=self.lecturer)
        AttendanceRecord.objects.create(session=session, student=self.student, status="present")
        AttendanceRecord.objects.create(session=session2, student=self.student, status="absent")

        weekday = self.today.weekday()
        TimetableEntry.objects.create(subject=self.cs101, lecturer=self.lecturer, day_of_week=weekday,
                                      start_time=time(9), end_time=time(10, 30), venue="Room 101")
        TimetableEntry.objects.create(subject=self.cs102, lecturer=self.lecturer, day_of_week=(weekday + 1) % 7,
                                      start_time=time(11), end_time=time(12, 30))
        TimetableEntry.objects.create(subject=self.cs103, lecturer=self.lecturer, day_of_week=weekday,
                                      start_time=time(14), end_time=time(15))

        data = dashboards.student_dashboard(self.student, today=self.today)
        self.assertFalse(data["needs_application"])
        self.assertTrue(data["has_active_registration"])
        self.assertEqual(data["enrolled_subjects"], 2)
        self.assertEqual(data["total_credits"], 27)
        self.assertEqual(data["average_mark"], Decimal("70.00"))
        self.assertEqual(data["attendance_rate"], 0.5)
        self.assertEqual([e.subject.code for e in data["todays_classes"]], ["CS101"])
        self.assertEqual(data["finance"].paid_amount, Decimal("15000.00"))
        self.assertEqual(data["finance"].status, "partial")

    def test_missing_catalog_entry_contributes_zero(self):
        app = Application.objects.create(
            student=self.student, course=self.course, academic_year=AcademicYear.current(), status="approved"
        )
        Registration.objects.create(
            student=self.student, course=self.course, application=app, year=1, subject_codes=["CS101", "GONE1"]
        )
        data = dashboards.student_dashboard(self.student, today=self.today)
        self.assertEqual(data["enrolled_subjects"], 2)
        self.assertEqual(data["total_credits"], 12)

    def test_dashboard_does_not_write(self):
        self.register(self.student, ["CS101"])
        counts = (Application.objects.count(), Registration.objects.count(), SubjectEnrollment.objects.count())
        dashboards.student_dashboard(self.student, today=self.today)
        dashboards.admin_dashboard()
        dashboards.finance_dashboard(today=self.today)
        dashboards.lecturer_dashboard(self.lecturer, today=self.today)
        self.assertEqual(
            counts, (Application.objects.count(), Registration.objects.count(), SubjectEnrollment.objects.count())
        )


class LecturerDashboardTests(DashboardTestCase):
    def setUp(self):
        super().setUp()
        weekday = self.today.weekday()
        TimetableEntry.objects.create(subject=self.cs101, lecturer=self.lecturer, day_of_week=weekday,
                                      start_time=time(9), end_time=time(10))
        TimetableEntry.objects.create(subject=self.cs101, lecturer=self.lecturer, day_of_week=(weekday + 2) % 7,
                                      start_time=time(9), end_time=time(10))
        TimetableEntry.objects.create(subject=self.cs102, lecturer=self.lecturer, day_of_week=(weekday + 1) % 7,
                                      start_time=time(11), end_time=time(12))
        other_lecturer = self.User.objects.create_user(username="lec2", password="pass1234", role="lecturer")
        TimetableEntry.objects.create(subject=self.cs103, lecturer=other_lecturer, day_of_week=weekday,
                                      start_time=time(13), end_time=time(14))

        self.s2 = self.User.objects.create_user(username="stu2", password="pass1234", role="student")
        self.s3 = self.User.objects.create_user(username="stu3", password="pass1234", role="student")
        self.register(self.student, ["CS101", "CS102"])
        self.register(self.s2, ["CS101"])
        self.register(self.s3, ["CS103"])

    def test_subject_rows_and_counts(self):
        data = dashboards.lecturer_dashboard(self.lecturer, today=self.today)
        rows = {r["subject"].code: r["students"] for r in data["subjects"]}
        self.assertEqual(rows, {"CS101": 2, "CS102": 1})
        self.assertEqual(data["active_subjects"], 2)
        self.assertEqual(data["total_students"], 2)
        self.assertEqual([r["entry"].subject.code for r in data["todays_schedule"]], ["CS101"])
        self.assertEqual(data["todays_schedule"][0]["students"], 2)

    def test_pending_grades_and_sessions(self):
        Result.objects.create(student=self.student, subject=self.cs101, mark=0, grade="")
        Result.objects.create(student=self.s2, subject=self.cs101, mark=Decimal("55"), grade="")
        Result.objects.create(student=self.student, subject=self.cs102, mark=Decimal("70"), grade="B")
        Result.objects.create(student=self.s3, subject=self.cs103, mark=0, grade="")

        AttendanceSession.objects.create(subject=self.cs101, lecturer=self.lecturer, is_active=True)
        AttendanceSession.objects.create(subject=self.cs102, lecturer=self.lecturer, is_active=False)

        data = dashboards.lecturer_dashboard(self.lecturer, today=self.today)
        self.assertEqual(data["pending_grades"], 2)
        self.assertEqual(data["active_sessions"], 1)

    def test_lecturer_without_timetable(self):
        nobody = self.User.objects.create_user(username="lec3", password="pass1234", role="lecturer")
        data = dashboards.lecturer_dashboard(nobody, today=self.today)
        self.assertEqual(data["subjects"], [])
        self.assertEqual(data["total_students"], 0)
        self.assertEqual(data["average_attendance"], 0.0)


class PortfolioDashboardTests(DashboardTestCase):
    def setUp(self):
        super().setUp()
        self.s2 = self.User.objects.create_user(username="stu2", password="pass1234", role="student")
        self.register(self.student, ["CS101"])
        self.register(self.s2, ["CS102"])
        self.pay(self.student, "15000")
        self.pay(self.s2, "50000")
        self.pay(self.s2, "100", decision="rejected")
        self.pay(self.student, "500", decision=None)
        services_app = registrar.submit_application(self.User.objects.create_user(username="stu3", role="student"), "CS")
        self.pending_app = services_app

    def test_admin_dashboard(self):
        data = dashboards.admin_dashboard()
        self.assertEqual(data["total_students"], 3)
        self.assertEqual(data["active_staff"], 3)
        self.assertEqual(data["total_subjects"], 3)
        self.assertEqual(data["active_registrations"], 2)
        self.assertEqual(data["pending_applications"], 1)
        self.assertEqual(data["total_revenue"], Decimal("65000.00"))
        # overpayment by stu2 does not offset stu1's debt
        self.assertEqual(data["outstanding_total"], Decimal("30000.00"))
        self.assertEqual(data["pending_payments"], 1)

    def test_finance_dashboard(self):
        data = dashboards.finance_dashboard(today=self.today)
        self.assertEqual(data["total_revenue"], Decimal("65000.00"))
        self.assertEqual(data["monthly_revenue"], Decimal("65000.00"))
        self.assertEqual(data["outstanding_total"], Decimal("30000.00"))
        self.assertEqual(data["students_with_outstanding"], 1)
        self.assertEqual(data["pending_approvals"], 1)
        self.assertEqual(data["approval_rate"], round(2 * 100 / 3, 1))
        self.assertEqual(len(data["recent_payments"]), 4)
        self.assertEqual(data["monthly_trend"][0]["revenue"], Decimal("65000.00"))

    def test_revenue_from_earlier_month_is_not_monthly(self):
        next_month = (self.today.replace(day=28) + timedelta(days=5)).replace(day=1)
        data = dashboards.finance_dashboard(today=next_month)
        self.assertEqual(data["monthly_revenue"], Decimal("0.00"))
        self.assertEqual(data["total_revenue"], Decimal("65000.00"))

    def test_dashboard_for_dispatches_on_role(self):
        self.assertEqual(dashboards.dashboard_for(self.student, today=self.today)["role"], "student")
        self.assertEqual(dashboards.dashboard_for(self.lecturer, today=self.today)["role"], "lecturer")
        self.assertEqual(dashboards.dashboard_for(self.admin)["role"], "admin")
        self.assertEqual(dashboards.dashboard_for(self.finance, today=self.today)["role"], "finance")


class ReportViewTests(DashboardTestCase):
    def test_dashboard_renders_for_every_role(self):
        for user in (self.student, self.lecturer, self.admin, self.finance):
            self.client.force_login(user)
            resp = self.client.get(reverse("accounts:dashboard"))
            self.assertEqual(resp.status_code, 200)
            self.assertEqual(resp.context["role"], user.role)

    def test_fee_statement_pdf(self):
        self.register(self.student, ["CS101"])
        self.pay(self.student, "15000")
        pdf = generate_fee_statement_pdf(self.student)
        self.assertTrue(pdf.startswith(b"%PDF"))

    def test_long_payment_history_spans_pages(self):
        for i in range(80):
            self.pay(self.student, f"{100 + i}", decision=None)
        pdf = generate_fee_statement_pdf(self.student)
        pages = re.findall(rb"/Type /Page[^s]", pdf)
        self.assertGreater(len(pages), 1)

    def test_student_downloads_statement(self):
        self.client.force_login(self.student)
        resp = self.client.get(reverse("reports:my_statement"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp["Content-Type"], "application/pdf")

    def test_staff_statement_access(self):
        self.client.force_login(self.lecturer)
        resp = self.client.get(reverse("reports:student_statement", args=[self.student.pk]))
        self.assertEqual(resp.status_code, 302)

        self.client.force_login(self.finance)
        resp = self.client.get(reverse("reports:student_statement", args=[self.student.pk]))
        self.assertEqual(resp.status_code, 200)
