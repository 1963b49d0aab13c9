from django import forms
from .models import Payment

class SubmitPaymentForm(forms.Form):
    amount = forms.DecimalField(
        max_digits=12, decimal_places=2,
        widget=forms.NumberInput(attrs={"class": "form-control", "step": "0.01"})
    )
    type = forms.ChoiceField(
        choices=Payment.TYPE_CHOICES,
        widget=forms.Select(attrs={"class": "form-select"})
    )
    description = forms.CharField(
        required=False,
        max_length=255,
        widget=forms.TextInput(attrs={"class": "form-control", "placeholder": "e.g. Tuition - Semester 1"})
    )
    proof = forms.FileField(
        required=False,
        widget=forms.ClearableFileInput(attrs={"class": "form-control"})
    )

class PaymentDecisionForm(forms.Form):
    decision = forms.ChoiceField(
        choices=[("approved", "Approve"), ("rejected", "Reject")],
        widget=forms.Select(attrs={"class": "form-select"})
    )
