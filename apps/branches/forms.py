# branches/forms.py

"""
Branch, seat and locker forms.
"""

from django import forms
import logging

from utils.forms import (
    BootstrapFormMixin,
    PhoneInput,
    TimePickerInput,
    validate_phone_number,
)

from .models import Branch, Seat, Locker

logger = logging.getLogger(__name__)

AMENITY_CHOICES = [
    ('WIFI', 'Wi-Fi'),
    ('AC', 'Air Conditioning'),
    ('POWER_BACKUP', 'Power Backup'),
    ('CHARGING', 'Charging Points'),
    ('DRINKING_WATER', 'Drinking Water'),
    ('CCTV', 'CCTV'),
    ('LOCKERS', 'Lockers'),
    ('PARKING', 'Parking'),
    ('CAFETERIA', 'Cafeteria'),
    ('WASHROOM', 'Washroom'),
]


# =============================================================================
# BRANCH FORM
# =============================================================================

class BranchForm(BootstrapFormMixin, forms.ModelForm):

    amenities = forms.MultipleChoiceField(
        choices=AMENITY_CHOICES,
        required=False,
        widget=forms.CheckboxSelectMultiple
    )

    class Meta:
        model = Branch
        fields = [
            'name', 'description', 'manager_name',
            'address', 'area', 'city', 'state', 'pincode',
            'contact_phone', 'contact_email',
            'opening_time', 'closing_time', 'is_24_hours',
            'amenities', 'is_active',
        ]
        widgets = {
            'description': forms.Textarea(attrs={'rows': 3}),
            'address': forms.Textarea(attrs={'rows': 2}),
            'contact_phone': PhoneInput(),
            'opening_time': TimePickerInput(),
            'closing_time': TimePickerInput(),
        }

    def clean_contact_phone(self):
        phone = self.cleaned_data.get('contact_phone')
        validate_phone_number(phone)
        return phone

    def clean(self):
        cleaned_data = super().clean()
        if not cleaned_data.get('is_24_hours'):
            if bool(cleaned_data.get('opening_time')) != bool(cleaned_data.get('closing_time')):
                raise forms.ValidationError("Set both opening and closing time, or neither.")
        return cleaned_data


# =============================================================================
# SEAT & LOCKER FORMS
# =============================================================================

class SeatForm(BootstrapFormMixin, forms.ModelForm):
    class Meta:
        model = Seat
        fields = ['number', 'section', 'is_active']


class BulkSeatForm(BootstrapFormMixin, forms.Form):
    """Create a numbered run of seats, e.g. A01..A40"""

    count = forms.IntegerField(min_value=1, max_value=500)
    start = forms.IntegerField(min_value=0, initial=1)
    prefix = forms.CharField(max_length=5, required=False)
    section = forms.CharField(max_length=50, required=False)


class LockerForm(BootstrapFormMixin, forms.ModelForm):
    class Meta:
        model = Locker
        fields = ['number', 'notes', 'is_active']
