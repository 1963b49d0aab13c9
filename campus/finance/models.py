from django.conf import settings
from django.db import models
from django.utils import timezone

from academics.models import Course

User = settings.AUTH_USER_MODEL

class FeeStructure(models.Model):
    name = models.CharField(max_length=120)
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="fee_structures")
    year = models.PositiveSmallIntegerField(null=True, blank=True, help_text="Leave blank to apply to every year.")
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        unique_together = ("course", "year")

    def __str__(self):
        return f"{self.name} ({self.course.code}, year {self.year or 'any'})"

class Payment(models.Model):
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]
    TYPE_CHOICES = [
        ("tuition", "Tuition"),
        ("registration", "Registration"),
        ("accommodation", "Accommodation"),
        ("other", "Other"),
    ]

    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    description = models.CharField(max_length=255, blank=True)
    submitted_at = models.DateTimeField(default=timezone.now)
    proof_ref = models.CharField(max_length=255, blank=True)  # opaque storage handle

    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")

    class Meta:
        ordering = ("-submitted_at", "-id")

    def __str__(self):
        return f"Payment #{self.id} - {self.student} {self.amount} ({self.status})"
