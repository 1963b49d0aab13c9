from django.contrib import admin
from django.db import transaction
from .models import AcademicYear

@admin.register(AcademicYear)
class AcademicYearAdmin(admin.ModelAdmin):
    list_display = ("name", "start_date", "end_date", "is_current")
    ordering = ("-start_date",)
    actions = ["make_current"]

    @admin.action(description="Make the selected year the current cycle")
    def make_current(self, request, queryset):
        if queryset.count() != 1:
            self.message_user(request, "Select exactly one academic year.", level="error")
            return
        year = queryset.get()
        with transaction.atomic():
            AcademicYear.objects.exclude(pk=year.pk).update(is_current=False)
            AcademicYear.objects.filter(pk=year.pk).update(is_current=True)
        self.message_user(request, f"{year} is now the current cycle.")
