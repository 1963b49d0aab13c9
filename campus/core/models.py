from django.db import models
from django.utils import timezone

class AcademicYear(models.Model):
    name = models.CharField(max_length=20, unique=True)  # "2025"
    start_date = models.DateField()
    end_date = models.DateField()
    is_current = models.BooleanField(default=False)

    class Meta:
        ordering = ["-start_date"]

    def __str__(self) -> str:
        return self.name

    @classmethod
    def current(cls):
        """
        The cycle applications are filed under. Falls back to the calendar
        year, creating it on first use.
        """
        year = cls.objects.filter(is_current=True).first()
        if year:
            return year
        today = timezone.localdate()
        year, _ = cls.objects.get_or_create(
            name=str(today.year),
            defaults={
                "start_date": today.replace(month=1, day=1),
                "end_date": today.replace(month=12, day=31),
                "is_current": True,
            },
        )
        return year
