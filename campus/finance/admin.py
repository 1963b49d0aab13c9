from django.contrib import admin, messages

from core.exceptions import LifecycleError
from core.roles import role_of
from .models import FeeStructure, Payment
from .services import decide_payment

@admin.register(FeeStructure)
class FeeStructureAdmin(admin.ModelAdmin):
    list_display = ("name", "course", "year", "amount")
    list_filter = ("course", "year")

@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "student", "amount", "type", "status", "submitted_at", "decided_at")
    list_filter = ("status", "type")
    search_fields = ("student__username", "student__student_number", "description")
    readonly_fields = ("status", "decided_at", "decided_by")

    actions = ["approve_selected", "reject_selected"]

    def _decide(self, request, queryset, decision):
        done = 0
        for payment in queryset:
            try:
                decide_payment(payment.pk, decision, role_of(request.user), actor=request.user)
                done += 1
            except LifecycleError as e:
                self.message_user(request, f"#{payment.pk}: {e.message}", level=messages.ERROR)
        if done:
            self.message_user(request, f"{done} payment(s) {decision}.")

    def approve_selected(self, request, queryset):
        self._decide(request, queryset, Payment.STATUS_APPROVED)
    approve_selected.short_description = "Approve selected payments"

    def reject_selected(self, request, queryset):
        self._decide(request, queryset, Payment.STATUS_REJECTED)
    reject_selected.short_description = "Reject selected payments"
