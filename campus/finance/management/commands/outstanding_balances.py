from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from core.roles import STUDENT
from finance.services import finance_summary_for_student

class Command(BaseCommand):
    help = "List students whose approved payments do not yet cover their fees."

    def add_arguments(self, parser):
        parser.add_argument("--min-outstanding", type=str, default="0.01")

    def handle(self, *args, **options):
        try:
            threshold = Decimal(options["min_outstanding"])
        except InvalidOperation:
            raise CommandError(f"Invalid --min-outstanding '{options['min_outstanding']}'.")
        if not threshold.is_finite():
            raise CommandError(f"Invalid --min-outstanding '{options['min_outstanding']}'.")

        students = get_user_model().objects.filter(role=STUDENT, registrations__status="active")\
            .distinct().order_by("last_name", "first_name", "username")

        found = 0
        for student in students:
            summary = finance_summary_for_student(student)
            if summary.outstanding_amount < threshold:
                continue
            found += 1
            self.stdout.write(
                f"{student.student_number or student.username}: "
                f"outstanding {summary.outstanding_amount} of {summary.total_fees} "
                f"(paid {summary.paid_amount})"
            )

        if not found:
            self.stdout.write("No outstanding balances.")
