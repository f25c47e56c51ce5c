# students/forms.py

"""
Student registration and management forms.
Uses utils/forms for consistent behavior across the application.
"""

from django import forms
from django.core.exceptions import ValidationError
from django.utils import timezone
import logging

from utils.forms import (
    BootstrapFormMixin,
    HTMXFilterFormMixin,
    DatePickerInput,
    PhoneInput,
    SearchInput,
    validate_phone_number,
)
from branches.models import Branch

from .models import Student, SupportTicket
from .status import STATUS_CHOICES

logger = logging.getLogger(__name__)


def _branch_queryset(library):
    if library is None:
        return Branch.objects.none()
    return Branch.objects.for_library(library).filter(is_active=True).order_by('name')


# =============================================================================
# STUDENT FILTER FORM (HTMX SEARCH)
# =============================================================================

class StudentFilterForm(HTMXFilterFormMixin, BootstrapFormMixin, forms.Form):
    """
    HTMX-powered student filter form.

    Usage:
        form = StudentFilterForm(request.GET, library=request.library)
    """

    htmx_get = '/students/search/'
    htmx_target = '#student-list'
    search_delay = 300

    search = forms.CharField(
        label='Search',
        required=False,
        widget=SearchInput(attrs={'placeholder': 'Search by name, email or phone...'})
    )
    status = forms.ChoiceField(
        label='Status',
        choices=[('', 'All Statuses')] + STATUS_CHOICES,
        required=False,
    )
    branch = forms.ModelChoiceField(
        label='Branch',
        queryset=Branch.objects.none(),
        required=False,
        empty_label='All Branches',
    )

    def __init__(self, *args, library=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['branch'].queryset = _branch_queryset(library)


# =============================================================================
# REGISTRATION WIZARD FORMS
# =============================================================================

class StudentBasicInfoForm(BootstrapFormMixin, forms.Form):
    """Step 1: identity, home branch and login secret"""

    name = forms.CharField(max_length=150, label='Full Name')
    branch = forms.ModelChoiceField(
        queryset=Branch.objects.none(),
        label='Home Branch',
        empty_label='Select branch',
    )
    gender = forms.ChoiceField(
        choices=[('', 'Select')] + list(Student.GENDER_CHOICES),
        required=False,
    )
    date_of_birth = forms.DateField(required=False, widget=DatePickerInput())
    password = forms.CharField(
        required=False,
        min_length=6,
        widget=forms.PasswordInput(render_value=True),
        help_text="Leave blank to use the date of birth (DDMMYYYY) as the first password",
    )

    def __init__(self, *args, library=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['branch'].queryset = _branch_queryset(library)

    def clean_name(self):
        name = self.cleaned_data.get('name', '').strip()
        if len(name) < 2:
            raise ValidationError("Enter the student's full name.")
        return name

    def clean_date_of_birth(self):
        dob = self.cleaned_data.get('date_of_birth')
        if dob and dob >= timezone.localdate():
            raise ValidationError("Date of birth must be in the past.")
        return dob

    def clean(self):
        cleaned_data = super().clean()
        if not cleaned_data.get('password') and not cleaned_data.get('date_of_birth'):
            raise ValidationError("Password or Date of Birth is required.")
        return cleaned_data


class StudentContactInfoForm(BootstrapFormMixin, forms.Form):
    """Step 2: contact, address and guardian"""

    email = forms.EmailField(required=False)
    phone = forms.CharField(max_length=10, required=False, widget=PhoneInput())
    address = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))
    area = forms.CharField(max_length=100, required=False)
    city = forms.CharField(max_length=100, required=False)
    state = forms.CharField(max_length=100, required=False)
    pincode = forms.CharField(max_length=10, required=False)
    guardian_name = forms.CharField(max_length=150, required=False)
    guardian_phone = forms.CharField(max_length=10, required=False, widget=PhoneInput())

    def clean_phone(self):
        phone = self.cleaned_data.get('phone', '').strip()
        validate_phone_number(phone)
        return phone

    def clean_guardian_phone(self):
        phone = self.cleaned_data.get('guardian_phone', '').strip()
        validate_phone_number(phone)
        return phone

    def clean(self):
        cleaned_data = super().clean()
        if not cleaned_data.get('email') and not cleaned_data.get('phone'):
            raise ValidationError("Either email or phone number is required.")
        if cleaned_data.get('phone') and cleaned_data.get('phone') == cleaned_data.get('guardian_phone'):
            self.add_error('guardian_phone', "Guardian phone must differ from the student's phone.")
        return cleaned_data


class StudentDocumentsForm(BootstrapFormMixin, forms.Form):
    """Step 3: photo, government ID and confirmation"""

    photo = forms.ImageField(required=False)
    govt_id = forms.FileField(
        required=False,
        label='Government ID',
        help_text="An uploaded ID is marked verified at registration",
    )
    confirm_creation = forms.BooleanField(
        required=True,
        label="I confirm that all the information provided is correct"
    )


# =============================================================================
# WIZARD CONFIGURATION
# =============================================================================

STUDENT_WIZARD_FORMS = [
    ("basic_info", StudentBasicInfoForm),
    ("contact_info", StudentContactInfoForm),
    ("documents", StudentDocumentsForm),
]

STUDENT_WIZARD_STEP_NAMES = {
    'basic_info': 'Personal Information',
    'contact_info': 'Contact & Guardian',
    'documents': 'Documents & Confirmation',
}


# =============================================================================
# GENERAL STUDENT FORM (SINGLE PAGE)
# =============================================================================

class StudentForm(BootstrapFormMixin, forms.ModelForm):
    """Profile edit form; registration goes through the wizard"""

    class Meta:
        model = Student
        fields = [
            'name', 'branch', 'email', 'phone', 'date_of_birth', 'gender',
            'address', 'area', 'city', 'state', 'pincode',
            'guardian_name', 'guardian_phone',
        ]
        widgets = {
            'date_of_birth': DatePickerInput(),
            'phone': PhoneInput(),
            'guardian_phone': PhoneInput(),
            'address': forms.Textarea(attrs={'rows': 2}),
        }

    def __init__(self, *args, library=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['branch'].queryset = _branch_queryset(library)
        self.fields['branch'].required = True

    def clean_phone(self):
        phone = self.cleaned_data.get('phone') or None
        validate_phone_number(phone)
        return phone

    def clean_email(self):
        return (self.cleaned_data.get('email') or '').lower() or None


# =============================================================================
# NOTES & TICKETS
# =============================================================================

class StudentNoteForm(BootstrapFormMixin, forms.Form):
    content = forms.CharField(widget=forms.Textarea(attrs={'rows': 3}), max_length=2000)


class SupportTicketForm(BootstrapFormMixin, forms.ModelForm):
    class Meta:
        model = SupportTicket
        fields = ['subject', 'category', 'description']
        widgets = {'description': forms.Textarea(attrs={'rows': 4})}
