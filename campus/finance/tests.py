import os
import random
import shutil
import tempfile
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import CommandError, call_command
from django.test import TestCase, override_settings
from django.urls import reverse

from academics.models import Course, Subject
from core import exceptions as errors
from finance import services
from finance.models import FeeStructure, Payment
from registrar import services as registrar


def _payment(amount, status="approved", type="tuition"):
    return Payment(amount=Decimal(amount), status=status, type=type)


class FinanceSummaryTests(TestCase):
    def test_partial_payment(self):
        summary = services.compute_finance_summary(
            [_payment("15000"), _payment("5000", status="pending")], Decimal("45000")
        )
        self.assertEqual(summary.paid_amount, Decimal("15000.00"))
        self.assertEqual(summary.outstanding_amount, Decimal("30000.00"))
        self.assertEqual(summary.status, "partial")

    def test_exact_settlement_counts_as_paid(self):
        summary = services.compute_finance_summary([_payment("20000")], Decimal("20000"))
        self.assertEqual(summary.outstanding_amount, Decimal("0.00"))
        self.assertEqual(summary.status, "paid")

    def test_overpayment_is_negative_outstanding(self):
        summary = services.compute_finance_summary([_payment("25000.50")], "20000")
        self.assertEqual(summary.outstanding_amount, Decimal("-5000.50"))
        self.assertTrue(summary.is_paid)

    def test_no_payments(self):
        summary = services.compute_finance_summary([], Decimal("45000"))
        self.assertEqual(summary.paid_amount, Decimal("0.00"))
        self.assertEqual(summary.outstanding_amount, Decimal("45000.00"))
        self.assertEqual(summary.status, "partial")

    def test_summary_is_deterministic_and_order_independent(self):
        payments = [
            _payment("100.10"), _payment("200.20", type="registration"),
            _payment("300.30", status="rejected"), _payment("0.40", type="other"),
        ]
        first = services.compute_finance_summary(payments, "1000")
        shuffled = payments[:]
        random.Random(7).shuffle(shuffled)
        second = services.compute_finance_summary(shuffled, "1000")
        self.assertEqual(first, second)
        self.assertEqual(first.as_dict(), second.as_dict())

    def test_no_binary_float_drift(self):
        payments = [_payment("0.10") for _ in range(10)] + [_payment("0.20")]
        summary = services.compute_finance_summary(payments, "1.30")
        self.assertEqual(summary.paid_amount, Decimal("1.20"))
        self.assertEqual(summary.outstanding_amount, Decimal("0.10"))

    def test_approving_more_never_increases_outstanding(self):
        payments = [_payment("1000"), _payment("250", status="pending")]
        before = services.compute_finance_summary(payments, "5000")
        payments[1].status = "approved"
        after = services.compute_finance_summary(payments, "5000")
        self.assertLessEqual(after.outstanding_amount, before.outstanding_amount)

    def test_rejecting_never_changes_paid(self):
        payments = [_payment("1000"), _payment("250", status="pending")]
        before = services.compute_finance_summary(payments, "5000")
        payments[1].status = "rejected"
        after = services.compute_finance_summary(payments, "5000")
        self.assertEqual(after.paid_amount, before.paid_amount)

    def test_paid_by_type(self):
        summary = services.compute_finance_summary(
            [_payment("100"), _payment("50", type="accommodation"), _payment("25", type="accommodation")], "500"
        )
        self.assertEqual(summary.paid_by_type["tuition"], Decimal("100.00"))
        self.assertEqual(summary.paid_by_type["accommodation"], Decimal("75.00"))
        self.assertEqual(summary.paid_by_type["registration"], Decimal("0.00"))


class LedgerTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.student = User.objects.create_user(username="stu1", password="pass1234", role="student", student_number="2025001")
        self.finance = User.objects.create_user(username="fin1", password="pass1234", role="finance")
        self.admin = User.objects.create_user(username="adm1", password="pass1234", role="admin")
        self.course = Course.objects.create(code="CS", name="Computer Science")
        Subject.objects.create(code="CS101", name="Programming", credits=12, course=self.course)

    def register(self, student=None, year=1):
        student = student or self.student
        app = registrar.submit_application(student, "CS")
        registrar.decide_application(app.id, "approved", "admin")
        return registrar.finalize_registration(student, "CS", year, ["CS101"])

    def test_submit_payment_is_pending(self):
        p = services.submit_payment(self.student, "1500.50", "tuition", " Semester 1 ", proof_ref="payment_proofs/1/pop.pdf")
        self.assertEqual(p.status, "pending")
        self.assertEqual(p.amount, Decimal("1500.50"))
        self.assertEqual(p.description, "Semester 1")
        self.assertEqual(p.proof_ref, "payment_proofs/1/pop.pdf")

    def test_submit_rejects_bad_amounts(self):
        for bad in ("0", "-10", "abc", "10.005", "NaN", "Infinity", None, True):
            with self.assertRaises(errors.ValidationError, msg=repr(bad)) as ctx:
                services.submit_payment(self.student, bad, "tuition")
            self.assertEqual(ctx.exception.field, "amount")
        self.assertFalse(Payment.objects.exists())

    def test_submit_rejects_amount_beyond_column_range(self):
        for huge in ("10000000000", "1e40"):
            with self.assertRaises(errors.ValidationError) as ctx:
                services.submit_payment(self.student, huge, "tuition")
            self.assertEqual(ctx.exception.field, "amount")
        p = services.submit_payment(self.student, "9999999999.99", "tuition")
        self.assertEqual(p.amount, Decimal("9999999999.99"))

    def test_submit_rejects_unknown_type(self):
        with self.assertRaises(errors.ValidationError) as ctx:
            services.submit_payment(self.student, "10", "donation")
        self.assertEqual(ctx.exception.field, "type")

    def test_decide_requires_finance_role(self):
        p = services.submit_payment(self.student, "100", "tuition")
        for role in ("admin", "student", "lecturer"):
            with self.assertRaises(errors.Unauthorized):
                services.decide_payment(p.id, "approved", role)
        p.refresh_from_db()
        self.assertEqual(p.status, "pending")

    def test_decision_is_terminal(self):
        p = services.submit_payment(self.student, "100", "tuition")
        decided = services.decide_payment(p.id, "approved", "finance", actor=self.finance)
        self.assertEqual(decided.status, "approved")
        self.assertEqual(decided.decided_by, self.finance)
        with self.assertRaises(errors.InvalidTransition):
            services.decide_payment(p.id, "rejected", "finance")
        p.refresh_from_db()
        self.assertEqual(p.status, "approved")

    def test_decide_unknown_payment(self):
        with self.assertRaises(errors.ValidationError):
            services.decide_payment(12345, "approved", "finance")

    def test_default_fees_without_registration(self):
        self.assertEqual(services.total_fees_for_student(self.student), Decimal("45000.00"))

    @override_settings(CAMPUS_DEFAULT_TOTAL_FEES=Decimal("30000"))
    def test_default_fees_are_configurable(self):
        self.assertEqual(services.total_fees_for_student(self.student), Decimal("30000.00"))

    def test_fee_structure_lookup(self):
        self.register(year=2)
        FeeStructure.objects.create(name="CS all years", course=self.course, year=None, amount=Decimal("40000"))
        self.assertEqual(services.total_fees_for_student(self.student), Decimal("40000"))
        FeeStructure.objects.create(name="CS year 2", course=self.course, year=2, amount=Decimal("42000"))
        self.assertEqual(services.total_fees_for_student(self.student), Decimal("42000"))

    def test_summary_for_student_reads_approved_payments(self):
        self.register()
        approved = services.submit_payment(self.student, "15000", "tuition")
        services.decide_payment(approved.id, "approved", "finance")
        services.submit_payment(self.student, "5000", "tuition")

        summary = services.finance_summary_for_student(self.student)
        self.assertEqual(summary.total_fees, Decimal("45000.00"))
        self.assertEqual(summary.paid_amount, Decimal("15000.00"))
        self.assertEqual(summary.outstanding_amount, Decimal("30000.00"))
        self.assertEqual(summary.status, "partial")

    def test_rejection_leaves_paid_amount(self):
        p1 = services.submit_payment(self.student, "1000", "tuition")
        services.decide_payment(p1.id, "approved", "finance")
        p2 = services.submit_payment(self.student, "500", "tuition")
        before = services.finance_summary_for_student(self.student)
        services.decide_payment(p2.id, "rejected", "finance")
        after = services.finance_summary_for_student(self.student)
        self.assertEqual(before.paid_amount, after.paid_amount)

    def test_portfolio_summaries_cover_registered_students(self):
        self.register()
        other = get_user_model().objects.create_user(username="stu2", password="pass1234", role="student")
        self.register(other)
        p = services.submit_payment(other, "45000", "tuition")
        services.decide_payment(p.id, "approved", "finance")

        rows = dict(services.portfolio_summaries())
        self.assertEqual(rows[self.student.id].outstanding_amount, Decimal("45000.00"))
        self.assertEqual(rows[other.id].status, "paid")

    def test_outstanding_balances_command(self):
        self.register()
        out = StringIO()
        call_command("outstanding_balances", stdout=out)
        self.assertIn("2025001: outstanding 45000.00", out.getvalue())

    def test_outstanding_balances_command_rejects_bad_threshold(self):
        with self.assertRaises(CommandError):
            call_command("outstanding_balances", "--min-outstanding", "lots", stdout=StringIO())

    def test_outstanding_balances_command_when_all_paid(self):
        self.register()
        p = services.submit_payment(self.student, "45000", "tuition")
        services.decide_payment(p.id, "approved", "finance")
        out = StringIO()
        call_command("outstanding_balances", stdout=out)
        self.assertIn("No outstanding balances.", out.getvalue())


class FinanceViewTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.student = User.objects.create_user(username="stu1", password="pass1234", role="student")
        self.finance = User.objects.create_user(username="fin1", password="pass1234", role="finance")
        self.media = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media, ignore_errors=True)

    def test_student_submits_payment_with_proof(self):
        self.client.force_login(self.student)
        upload = SimpleUploadedFile("pop.pdf", b"%PDF-1.4 proof", content_type="application/pdf")
        with override_settings(MEDIA_ROOT=self.media):
            resp = self.client.post(reverse("finance:submit_payment"), {
                "amount": "2500.00", "type": "registration", "description": "Registration fee", "proof": upload,
            })
        self.assertRedirects(resp, reverse("finance:my_fees"), fetch_redirect_response=False)
        p = Payment.objects.get(student=self.student)
        self.assertEqual(p.status, "pending")
        self.assertTrue(p.proof_ref.startswith(f"payment_proofs/{self.student.pk}/"))

    def test_negative_amount_is_reported(self):
        self.client.force_login(self.student)
        resp = self.client.post(reverse("finance:submit_payment"), {"amount": "-5", "type": "tuition"})
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "greater than zero")
        self.assertFalse(Payment.objects.exists())

    def test_refused_payment_keeps_no_proof_file(self):
        self.client.force_login(self.student)
        for amount in ("0", "-5"):
            upload = SimpleUploadedFile("pop.pdf", b"%PDF-1.4 proof", content_type="application/pdf")
            with override_settings(MEDIA_ROOT=self.media):
                resp = self.client.post(reverse("finance:submit_payment"), {
                    "amount": amount, "type": "tuition", "proof": upload,
                })
            self.assertContains(resp, "greater than zero")
        self.assertFalse(Payment.objects.exists())
        stored = [name for _, _, files in os.walk(self.media) for name in files]
        self.assertEqual(stored, [])

    def test_my_fees_shows_summary(self):
        self.client.force_login(self.student)
        resp = self.client.get(reverse("finance:my_fees"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.context["summary"].outstanding_amount, Decimal("45000.00"))

    def test_finance_approves_from_queue(self):
        p = services.submit_payment(self.student, "100", "tuition")
        self.client.force_login(self.finance)
        resp = self.client.get(reverse("finance:verification_queue"))
        self.assertContains(resp, f"R{p.amount}")
        self.client.post(reverse("finance:decide_payment", args=[p.id]), {"decision": "approved"})
        p.refresh_from_db()
        self.assertEqual(p.status, "approved")

    def test_student_cannot_approve(self):
        p = services.submit_payment(self.student, "100", "tuition")
        self.client.force_login(self.student)
        self.client.post(reverse("finance:decide_payment", args=[p.id]), {"decision": "approved"})
        p.refresh_from_db()
        self.assertEqual(p.status, "pending")
