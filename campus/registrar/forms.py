from django import forms
from academics.models import Course, Subject

class ApplicationForm(forms.Form):
    course = forms.ModelChoiceField(
        queryset=Course.objects.all().order_by("code"),
        to_field_name="code",
        widget=forms.Select(attrs={"class": "form-select"})
    )

class DecisionForm(forms.Form):
    decision = forms.ChoiceField(
        choices=[("approved", "Approve"), ("rejected", "Reject")],
        widget=forms.Select(attrs={"class": "form-select"})
    )
    notes = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={"class": "form-control", "rows": 2, "placeholder": "Optional note to the student"})
    )

class FinalizeRegistrationForm(forms.Form):
    year = forms.TypedChoiceField(
        coerce=int,
        choices=[],
        widget=forms.Select(attrs={"class": "form-select"})
    )
    subjects = forms.MultipleChoiceField(
        required=False,
        choices=[],
        widget=forms.CheckboxSelectMultiple
    )

    def __init__(self, *args, course=None, **kwargs):
        super().__init__(*args, **kwargs)
        years = course.duration_years if course else 4
        self.fields["year"].choices = [(y, str(y)) for y in range(1, years + 1)]
        subjects = Subject.objects.filter(course=course).order_by("semester", "code") if course else Subject.objects.none()
        self.fields["subjects"].choices = [
            (s.code, f"{s.code} - {s.name} ({s.credits} credits, {s.semester})") for s in subjects
        ]
        if not self.is_bound:
            # default: everything ticked, as the portal always did
            self.initial.setdefault("subjects", [s.code for s in subjects])
