from io import BytesIO
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from django.utils import timezone

from finance.models import Payment
from finance.services import finance_summary_for_student
from registrar.models import Registration

def generate_fee_statement_pdf(student):
    summary = finance_summary_for_student(student)
    registration = Registration.objects.filter(student=student, status=Registration.STATUS_ACTIVE)\
        .select_related("course").first()

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    c.setFont("Helvetica-Bold", 16)
    c.drawString(40, height - 60, "Campus Portal - Fee Statement")

    c.setFont("Helvetica", 11)
    name = student.get_full_name() or student.username
    c.drawString(40, height - 85, f"Student: {name} ({student.student_number or student.username})")
    if registration:
        c.drawString(40, height - 105, f"Course: {registration.course.code} - {registration.course.name}, year {registration.year}")
    else:
        c.drawString(40, height - 105, "Course: not registered")
    c.drawString(40, height - 125, f"Generated: {timezone.now():%Y-%m-%d %H:%M}")

    y = height - 165
    c.setFont("Helvetica-Bold", 13)
    c.drawString(40, y, "Summary")
    y -= 20

    c.setFont("Helvetica", 11)
    for label, value in (
        ("Total fees", summary.total_fees),
        ("Paid (approved)", summary.paid_amount),
        ("Outstanding", summary.outstanding_amount),
    ):
        c.drawString(40, y, f"{label}:")
        c.drawRightString(width - 40, y, f"R {value:,.2f}")
        y -= 16
    c.drawString(40, y, f"Status: {summary.status.upper()}")
    y -= 30

    c.setFont("Helvetica-Bold", 13)
    c.drawString(40, y, "Payments")
    y -= 20

    payments = Payment.objects.filter(student=student).order_by("submitted_at", "id")
    c.setFont("Helvetica", 11)
    if not payments.exists():
        c.drawString(40, y, "- No payments submitted.")
        y -= 18
    else:
        for p in payments:
            if y < 60:
                c.showPage()
                c.setFont("Helvetica", 11)
                y = height - 60
            line = f"- {p.submitted_at:%Y-%m-%d} {p.get_type_display()}: R {p.amount:,.2f} [{p.status}]"
            if p.description:
                line += f" {p.description}"
            y = _draw_wrapped(c, line, 40, y, width - 80)
            y -= 4

    c.save()
    pdf = buf.getvalue()
    buf.close()
    return pdf

def _draw_wrapped(c, text, x, y, max_width):
    words = text.split()
    line = ""
    for w in words:
        test = (line + " " + w).strip()
        if c.stringWidth(test, "Helvetica", 11) <= max_width:
            line = test
        else:
            c.drawString(x, y, line)
            y -= 14
            line = w
            if y < 60:
                c.showPage()
                y = 780
                c.setFont("Helvetica", 11)
    if line:
        c.drawString(x, y, line)
        y -= 14
    return y
