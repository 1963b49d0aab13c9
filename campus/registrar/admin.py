from django.contrib import admin
from .models import Application, Registration

@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ("id", "student", "course", "academic_year", "status", "submitted_at", "decided_at")
    list_filter = ("status", "academic_year", "course")
    search_fields = ("student__username", "student__student_number", "course__code")
    readonly_fields = ("decided_at", "decided_by")

@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ("student", "course", "year", "status", "created_at")
    list_filter = ("status", "course", "year")
    search_fields = ("student__username", "student__student_number", "course__code")
