from django.conf import settings
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from academics.models import Course, Subject
from core.models import AcademicYear

User = settings.AUTH_USER_MODEL

class Application(models.Model):
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]

    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="applications")
    course = models.ForeignKey(Course, on_delete=models.PROTECT, related_name="applications")
    academic_year = models.ForeignKey(AcademicYear, on_delete=models.PROTECT, related_name="applications")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    submitted_at = models.DateTimeField(default=timezone.now)

    # set once, when an admin decides
    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ("-submitted_at",)
        constraints = [
            models.UniqueConstraint(
                fields=["student", "course", "academic_year"],
                condition=Q(status="approved"),
                name="one_approved_application_per_cycle",
            ),
        ]

    @property
    def course_code(self) -> str:
        return self.course.code

    def __str__(self):
        return f"{self.student} -> {self.course.code} ({self.status})"

class Registration(models.Model):
    STATUS_ACTIVE = "active"
    STATUS_CHOICES = [(STATUS_ACTIVE, "Active")]

    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="registrations")
    course = models.ForeignKey(Course, on_delete=models.PROTECT, related_name="registrations")
    application = models.ForeignKey(Application, on_delete=models.PROTECT, related_name="registrations")
    year = models.PositiveSmallIntegerField()
    subject_codes = models.JSONField(default=list)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["student"],
                condition=Q(status="active"),
                name="one_active_registration_per_student",
            ),
        ]

    @property
    def course_code(self) -> str:
        return self.course.code

    @property
    def total_credits(self) -> int:
        return Subject.objects.filter(code__in=self.subject_codes).aggregate(s=Sum("credits"))["s"] or 0

    def missing_codes(self):
        enrolled = set(self.memberships.values_list("subject__code", flat=True))
        return [code for code in self.subject_codes if code not in enrolled]

    def __str__(self):
        return f"{self.student} - {self.course.code} year {self.year}"
