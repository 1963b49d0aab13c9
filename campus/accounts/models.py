from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_STUDENT = "student"
    ROLE_LECTURER = "lecturer"
    ROLE_ADMIN = "admin"
    ROLE_FINANCE = "finance"

    ROLE_CHOICES = [
        (ROLE_STUDENT, "Student"),
        (ROLE_LECTURER, "Lecturer"),
        (ROLE_ADMIN, "Admin"),
        (ROLE_FINANCE, "Finance"),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_STUDENT, db_index=True)
    student_number = models.CharField(max_length=30, blank=True)
    staff_number = models.CharField(max_length=30, blank=True)

    @property
    def is_student(self) -> bool:
        return self.role == self.ROLE_STUDENT

    @property
    def is_lecturer(self) -> bool:
        return self.role == self.ROLE_LECTURER

    @property
    def is_college_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN

    @property
    def is_finance(self) -> bool:
        return self.role == self.ROLE_FINANCE

    def primary_role(self) -> str:
        return self.role or "user"

    def __str__(self):
        full = self.get_full_name()
        return f"{full} ({self.username})" if full else self.username
