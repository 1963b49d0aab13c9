from django.contrib import admin
from .models import (
    Course, Subject, SubjectEnrollment, TimetableEntry,
    AttendanceSession, AttendanceRecord, Result,
)

class SubjectInline(admin.TabularInline):
    model = Subject
    extra = 0

@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "department", "duration_years")
    search_fields = ("code", "name")
    inlines = [SubjectInline]

@admin.register(Subject)
class SubjectAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "credits", "course", "semester")
    list_filter = ("course", "semester")
    search_fields = ("code", "name")

@admin.register(SubjectEnrollment)
class SubjectEnrollmentAdmin(admin.ModelAdmin):
    list_display = ("student", "subject", "registration", "created_at")
    list_filter = ("subject",)
    search_fields = ("student__username", "student__student_number", "subject__code")

@admin.register(TimetableEntry)
class TimetableEntryAdmin(admin.ModelAdmin):
    list_display = ("subject", "lecturer", "day_of_week", "start_time", "end_time", "venue", "type")
    list_filter = ("day_of_week", "type")
    search_fields = ("subject__code", "subject__name", "lecturer__username")

class AttendanceRecordInline(admin.TabularInline):
    model = AttendanceRecord
    extra = 0

@admin.register(AttendanceSession)
class AttendanceSessionAdmin(admin.ModelAdmin):
    list_display = ("subject", "lecturer", "created_at", "is_active")
    list_filter = ("is_active", "subject")
    inlines = [AttendanceRecordInline]

@admin.register(Result)
class ResultAdmin(admin.ModelAdmin):
    list_display = ("student", "subject", "mark", "grade", "semester", "year")
    list_filter = ("subject", "semester", "year")
    search_fields = ("student__username", "student__student_number", "subject__code")
