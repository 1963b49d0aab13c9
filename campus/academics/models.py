from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL

class Course(models.Model):
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=120)
    department = models.CharField(max_length=120, blank=True)
    duration_years = models.PositiveSmallIntegerField(default=4)

    class Meta:
        ordering = ("code",)

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"

class Subject(models.Model):
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=100)
    credits = models.PositiveIntegerField()
    course = models.ForeignKey(Course, on_delete=models.PROTECT, related_name="subjects")
    semester = models.CharField(max_length=20, blank=True)

    class Meta:
        ordering = ("code",)

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"

class SubjectEnrollment(models.Model):
    # one membership per (student, subject); created by registration finalization
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="subject_enrollments")
    subject = models.ForeignKey(Subject, on_delete=models.PROTECT, related_name="enrollments")
    registration = models.ForeignKey("registrar.Registration", on_delete=models.CASCADE, related_name="memberships")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = ("student", "subject")

    def __str__(self) -> str:
        return f"{self.student} -> {self.subject.code}"

class TimetableEntry(models.Model):
    TYPE_CHOICES = [
        ("lecture", "Lecture"),
        ("practical", "Practical"),
        ("tutorial", "Tutorial"),
    ]
    subject = models.ForeignKey(Subject, on_delete=models.CASCADE, related_name="timetable")
    lecturer = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="timetable_entries")

    day_of_week = models.IntegerField(
        choices=[(0, "Mon"), (1, "Tue"), (2, "Wed"), (3, "Thu"), (4, "Fri"), (5, "Sat"), (6, "Sun")]
    )
    start_time = models.TimeField()
    end_time = models.TimeField()
    venue = models.CharField(max_length=60, blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default="lecture")

    class Meta:
        ordering = ("day_of_week", "start_time")

class AttendanceSession(models.Model):
    subject = models.ForeignKey(Subject, on_delete=models.CASCADE, related_name="attendance_sessions")
    lecturer = models.ForeignKey(User, on_delete=models.CASCADE, related_name="attendance_sessions")
    created_at = models.DateTimeField(default=timezone.now)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ("-created_at",)

class AttendanceRecord(models.Model):
    STATUS_CHOICES = [
        ("present", "Present"),
        ("absent", "Absent"),
        ("late", "Late"),
    ]
    session = models.ForeignKey(AttendanceSession, on_delete=models.CASCADE, related_name="records")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="attendance")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="present")
    recorded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = ("session", "student")
        ordering = ("-recorded_at",)

class Result(models.Model):
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="results")
    subject = models.ForeignKey(Subject, on_delete=models.PROTECT, related_name="results")
    mark = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    grade = models.CharField(max_length=4, blank=True)
    semester = models.CharField(max_length=20, blank=True)
    year = models.PositiveSmallIntegerField(default=1)

    class Meta:
        unique_together = ("student", "subject", "semester", "year")
