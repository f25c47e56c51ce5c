# utils/forms.py

"""
Shared form widgets, fields, mixins and validators.
"""

from django import forms
from django.core.exceptions import ValidationError
from decimal import Decimal, InvalidOperation
import re
import logging

logger = logging.getLogger(__name__)

PHONE_PATTERN = r'^\d{10}$'


# =============================================================================
# CUSTOM WIDGETS
# =============================================================================

class DatePickerInput(forms.DateInput):
    """Date picker widget with HTML5 date input"""
    input_type = 'date'

    def __init__(self, attrs=None, format=None):
        default_attrs = {'class': 'form-control'}
        if attrs:
            default_attrs.update(attrs)
        super().__init__(attrs=default_attrs, format=format or '%Y-%m-%d')


class TimePickerInput(forms.TimeInput):
    input_type = 'time'

    def __init__(self, attrs=None, format=None):
        default_attrs = {'class': 'form-control'}
        if attrs:
            default_attrs.update(attrs)
        super().__init__(attrs=default_attrs, format=format or '%H:%M')


class MoneyInput(forms.NumberInput):
    """Money input widget with proper formatting"""

    def __init__(self, attrs=None):
        default_attrs = {
            'class': 'form-control money-input',
            'step': '0.01',
            'min': '0',
            'placeholder': '0.00'
        }
        if attrs:
            default_attrs.update(attrs)
        super().__init__(attrs=default_attrs)


class PhoneInput(forms.TextInput):
    """10-digit mobile number input"""

    def __init__(self, attrs=None):
        default_attrs = {
            'class': 'form-control phone-input',
            'placeholder': '9876543210',
            'pattern': PHONE_PATTERN,
            'maxlength': '10',
        }
        if attrs:
            default_attrs.update(attrs)
        super().__init__(attrs=default_attrs)


class SearchInput(forms.TextInput):

    def __init__(self, attrs=None):
        default_attrs = {
            'class': 'form-control search-input',
            'placeholder': 'Search...',
            'type': 'search',
            'autocomplete': 'off'
        }
        if attrs:
            default_attrs.update(attrs)
        super().__init__(attrs=default_attrs)


# =============================================================================
# CUSTOM FORM FIELDS
# =============================================================================

class MoneyField(forms.DecimalField):
    """Decimal field for money amounts that tolerates currency symbols"""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('max_digits', 12)
        kwargs.setdefault('decimal_places', 2)
        kwargs.setdefault('min_value', Decimal('0.00'))
        kwargs.setdefault('widget', MoneyInput())
        super().__init__(*args, **kwargs)

    def clean(self, value):
        if value in self.empty_values:
            return super().clean(value)

        # Remove currency symbols and commas
        if isinstance(value, str):
            value = re.sub(r'[^\d.-]', '', value)

        try:
            value = Decimal(value)
        except (ValueError, InvalidOperation):
            raise ValidationError('Enter a valid amount.')

        return super().clean(value)


# =============================================================================
# FORM MIXINS
# =============================================================================

class BootstrapFormMixin:
    """Mixin to add Bootstrap classes to form fields"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.apply_bootstrap_classes()

    def apply_bootstrap_classes(self):
        for field_name, field in self.fields.items():
            widget = field.widget
            existing_classes = widget.attrs.get('class', '')

            if isinstance(widget, (forms.CheckboxInput, forms.RadioSelect)):
                css_class = 'form-check-input'
            elif isinstance(widget, forms.Select):
                css_class = 'form-select'
            else:
                css_class = 'form-control'

            if css_class not in existing_classes:
                widget.attrs['class'] = f"{existing_classes} {css_class}".strip()


class HTMXFilterFormMixin:
    """
    Mixin for HTMX-powered filter/search forms.

    Usage:
        class StudentFilterForm(HTMXFilterFormMixin, BootstrapFormMixin, forms.Form):
            htmx_get = '/students/search/'
            htmx_target = '#student-list'
    """

    htmx_get = None
    htmx_target = '#results'
    htmx_swap = 'innerHTML'
    htmx_indicator = '.htmx-indicator'
    search_delay = 400

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.configure_htmx_filters()

    def configure_htmx_filters(self):
        for field_name, field in self.fields.items():
            widget_attrs = field.widget.attrs

            if self.htmx_get:
                widget_attrs['hx-get'] = self.htmx_get
            widget_attrs['hx-target'] = self.htmx_target
            widget_attrs['hx-swap'] = self.htmx_swap
            widget_attrs['hx-indicator'] = self.htmx_indicator
            widget_attrs['hx-include'] = '[name]'

            if isinstance(field.widget, (forms.TextInput, forms.Textarea)):
                widget_attrs['hx-trigger'] = f'keyup changed delay:{self.search_delay}ms, search'
            else:
                widget_attrs['hx-trigger'] = 'change'


# =============================================================================
# VALIDATORS
# =============================================================================

def validate_phone_number(value):
    """Mobile numbers are exactly 10 digits"""
    if not value:
        return

    if not re.match(PHONE_PATTERN, value):
        raise ValidationError('Phone number must be exactly 10 digits.')


# =============================================================================
# FORM HELPERS
# =============================================================================

def get_form_errors_as_dict(form):
    """Convert form errors to a dictionary for JSON responses"""
    errors = {}

    for field, error_list in form.errors.items():
        errors[field] = [str(error) for error in error_list]

    return errors


def get_form_errors_as_string(form):
    error_messages = []

    for field, error_list in form.errors.items():
        field_label = form.fields[field].label if field in form.fields else field
        for error in error_list:
            if field == '__all__':
                error_messages.append(str(error))
            else:
                error_messages.append(f"{field_label}: {error}")

    return '\n'.join(error_messages)
