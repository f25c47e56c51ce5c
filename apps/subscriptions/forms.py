# subscriptions/forms.py

"""
Plan forms.
"""

from django import forms

from utils.forms import BootstrapFormMixin
from branches.models import Branch

from .models import Plan


class PlanForm(BootstrapFormMixin, forms.ModelForm):

    class Meta:
        model = Plan
        fields = [
            'name', 'description', 'branch',
            'price', 'duration', 'duration_unit', 'hours_per_day',
            'includes_seat', 'includes_locker', 'is_active',
        ]
        widgets = {
            'description': forms.Textarea(attrs={'rows': 2}),
        }

    def __init__(self, *args, library=None, **kwargs):
        super().__init__(*args, **kwargs)
        if library is not None and self.instance.library_id is None:
            self.instance.library = library
        self.fields['branch'].queryset = (
            Branch.objects.for_library(library).order_by('name')
            if library is not None else Branch.objects.none()
        )
        self.fields['branch'].empty_label = "All branches"

    def clean_duration(self):
        duration = self.cleaned_data.get('duration')
        if not duration:
            raise forms.ValidationError("Duration must be at least 1")
        return duration
