"""
Student fee ledger.

Students submit payments (pending); finance staff approve or reject each one
exactly once. A student's balance is never stored: ``compute_finance_summary``
derives it from the approved payments against the fee baseline every time.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.utils import timezone

from core import exceptions as errors
from core.roles import FINANCE, ensure_role
from registrar.models import Registration
from .models import FeeStructure, Payment

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# largest value a DecimalField(max_digits=12, decimal_places=2) column holds
MAX_AMOUNT = Decimal("9999999999.99")

PAYMENT_TYPES = tuple(code for code, _ in Payment.TYPE_CHOICES)
DECISIONS = (Payment.STATUS_APPROVED, Payment.STATUS_REJECTED)


@dataclass(frozen=True)
class FinanceSummary:
    total_fees: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    status: str
    paid_by_type: dict = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"

    def as_dict(self):
        return {
            "totalFees": str(self.total_fees),
            "paidAmount": str(self.paid_amount),
            "outstandingAmount": str(self.outstanding_amount),
            "status": self.status,
            "paidByType": {k: str(v) for k, v in self.paid_by_type.items()},
        }


def _money(value, field_name="amount") -> Decimal:
    if isinstance(value, bool):
        raise errors.ValidationError(f"Invalid {field_name} '{value}'.", field=field_name, value=value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise errors.ValidationError(f"Invalid {field_name} '{value}'.", field=field_name, value=value)
    if not amount.is_finite():
        raise errors.ValidationError(f"Invalid {field_name} '{value}'.", field=field_name, value=value)
    if abs(amount) > MAX_AMOUNT:
        raise errors.ValidationError(
            f"{field_name.capitalize()} cannot exceed {MAX_AMOUNT}.", field=field_name, value=str(amount)
        )
    if amount != amount.quantize(CENT):
        raise errors.ValidationError(
            f"{field_name.capitalize()} cannot be smaller than one cent.", field=field_name, value=str(amount)
        )
    return amount.quantize(CENT)


def compute_finance_summary(payments, total_fees) -> FinanceSummary:
    """
    Reconcile approved payments against the required fees.

    Pure: reads nothing but its arguments, so the same payment set always
    gives the same summary regardless of order. Overpayment shows up as a
    negative outstanding amount; exact settlement counts as paid.
    """
    total = _money(total_fees, "total_fees")
    by_type = {t: ZERO for t in PAYMENT_TYPES}
    paid = ZERO
    for p in payments:
        if p.status != Payment.STATUS_APPROVED:
            continue
        amount = _money(p.amount)
        paid += amount
        by_type[p.type] = by_type.get(p.type, ZERO) + amount

    outstanding = total - paid
    return FinanceSummary(
        total_fees=total,
        paid_amount=paid,
        outstanding_amount=outstanding,
        status="paid" if outstanding <= 0 else "partial",
        paid_by_type=by_type,
    )


def total_fees_for_student(student) -> Decimal:
    """
    Fee baseline for the student's active registration: an exact
    course/year fee structure wins over a course-wide one; without either
    (or without a registration) the configured default applies.
    """
    registration = Registration.objects.filter(student=student, status=Registration.STATUS_ACTIVE).first()
    if registration is None:
        return _money(settings.CAMPUS_DEFAULT_TOTAL_FEES, "total_fees")
    return fee_baselines([registration])[registration.student_id]


def fee_baselines(registrations):
    """Map student id -> required fees for a batch of registrations."""
    default = _money(settings.CAMPUS_DEFAULT_TOTAL_FEES, "total_fees")
    course_ids = {r.course_id for r in registrations}
    amounts = {
        (s.course_id, s.year): s.amount
        for s in FeeStructure.objects.filter(course_id__in=course_ids)
    }
    return {
        r.student_id: amounts.get((r.course_id, r.year), amounts.get((r.course_id, None), default))
        for r in registrations
    }


def portfolio_summaries():
    """
    (student id, FinanceSummary) for every actively registered student, using
    three queries however many students there are.
    """
    registrations = list(Registration.objects.filter(status=Registration.STATUS_ACTIVE))
    baselines = fee_baselines(registrations)

    approved = {}
    for p in Payment.objects.filter(status=Payment.STATUS_APPROVED, student_id__in=baselines.keys()):
        approved.setdefault(p.student_id, []).append(p)

    return [
        (student_id, compute_finance_summary(approved.get(student_id, []), fees))
        for student_id, fees in sorted(baselines.items())
    ]


def finance_summary_for_student(student, total_fees=None) -> FinanceSummary:
    if total_fees is None:
        total_fees = total_fees_for_student(student)
    payments = Payment.objects.filter(student=student, status=Payment.STATUS_APPROVED)
    return compute_finance_summary(payments, total_fees)


def submit_payment(student, amount, type: str, description: str = "", proof_ref=None) -> Payment:
    value = _money(amount)
    if value <= 0:
        raise errors.ValidationError("Payment amount must be greater than zero.", field="amount", value=str(value))
    if type not in PAYMENT_TYPES:
        raise errors.ValidationError(f"Unknown payment type '{type}'.", field="type", value=type)

    payment = Payment.objects.create(
        student=student,
        amount=value,
        type=type,
        description=(description or "").strip(),
        proof_ref=proof_ref or "",
    )
    logger.info("Payment %s submitted by student %s: %s %s", payment.pk, student.pk, value, type)
    return payment


def decide_payment(payment_id, decision: str, actor_role: str, *, actor=None) -> Payment:
    ensure_role(actor_role, FINANCE, "decide payments")

    if decision not in DECISIONS:
        raise errors.ValidationError(f"Invalid decision '{decision}'.", field="decision", value=decision)

    payment = Payment.objects.filter(pk=payment_id).first()
    if payment is None:
        raise errors.ValidationError(f"Payment {payment_id} not found.", field="payment_id", value=payment_id)

    updated = Payment.objects.filter(pk=payment.pk, status=Payment.STATUS_PENDING).update(
        status=decision,
        decided_at=timezone.now(),
        decided_by=actor,
    )
    if not updated:
        payment.refresh_from_db(fields=["status"])
        raise errors.InvalidTransition(
            f"Payment {payment.pk} is already {payment.status}.", field="status", value=payment.status
        )

    payment.refresh_from_db()
    logger.info("Payment %s %s by %s", payment.pk, decision, getattr(actor, "pk", actor_role))
    return payment


def pending_payments():
    return Payment.objects.filter(status=Payment.STATUS_PENDING).select_related("student").order_by("submitted_at")
