# fees/forms.py

"""
Fee Management Forms

- Payment collection (staff) and manual payment recording (owner)
- Additional fees
- Payment list filters
"""

from django import forms
from django.core.exceptions import ValidationError
import logging

from utils.forms import (
    BootstrapFormMixin,
    DatePickerInput,
    MoneyField,
    SearchInput,
)
from branches.models import Branch, Seat, Locker
from subscriptions.models import Plan

from .models import AdditionalFee, Payment

logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT FORMS
# =============================================================================

class PaymentCollectionForm(BootstrapFormMixin, forms.Form):
    """Payment a staff member collects at the desk"""

    student = forms.UUIDField(widget=forms.HiddenInput)
    amount = MoneyField()
    discount = MoneyField(required=False)
    method = forms.ChoiceField(choices=Payment.PAYMENT_METHOD_CHOICES, initial='CASH')
    payment_type = forms.ChoiceField(choices=Payment.PAYMENT_TYPE_CHOICES, initial='SUBSCRIPTION')
    plan = forms.ModelChoiceField(queryset=Plan.objects.none(), required=False, empty_label='Select plan')
    fee = forms.ModelChoiceField(
        queryset=AdditionalFee.objects.none(), required=False, empty_label='Select fee'
    )
    seat = forms.ModelChoiceField(queryset=Seat.objects.none(), required=False, empty_label='No seat')
    locker = forms.ModelChoiceField(queryset=Locker.objects.none(), required=False, empty_label='No locker')
    remarks = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def __init__(self, *args, library=None, branch=None, **kwargs):
        super().__init__(*args, **kwargs)
        if library is not None:
            plans = Plan.objects.for_library(library).filter(is_active=True)
            fees = AdditionalFee.objects.for_library(library).filter(is_active=True)
            seats = Seat.objects.for_library(library).filter(is_active=True)
            lockers = Locker.objects.for_library(library).filter(is_active=True)
            if branch is not None:
                plans = plans.filter(branch__isnull=True) | plans.filter(branch=branch)
                fees = fees.filter(branch__isnull=True) | fees.filter(branch=branch)
                seats = seats.filter(branch=branch)
                lockers = lockers.filter(branch=branch)
            self.fields['plan'].queryset = plans.order_by('name')
            self.fields['fee'].queryset = fees.order_by('name')
            self.fields['seat'].queryset = seats.order_by('number')
            self.fields['locker'].queryset = lockers.order_by('number')

    def clean(self):
        cleaned_data = super().clean()
        payment_type = cleaned_data.get('payment_type')

        if payment_type == 'SUBSCRIPTION' and not cleaned_data.get('plan'):
            raise ValidationError({'plan': 'Select a plan for a subscription payment.'})
        if payment_type == 'ADDITIONAL_FEE' and not cleaned_data.get('fee'):
            raise ValidationError({'fee': 'Select the fee being paid.'})

        amount = cleaned_data.get('amount')
        if amount is not None and amount <= 0:
            self.add_error('amount', 'Amount must be greater than zero.')

        return cleaned_data

    def service_kwargs(self):
        """Cleaned data in the shape PaymentService expects"""
        data = self.cleaned_data
        return {
            'student_id': data['student'],
            'amount': data['amount'],
            'method': data['method'],
            'payment_type': data['payment_type'],
            'plan_id': data['plan'].pk if data.get('plan') else None,
            'fee_id': data['fee'].pk if data.get('fee') else None,
            'seat_id': data['seat'].pk if data.get('seat') else None,
            'locker_id': data['locker'].pk if data.get('locker') else None,
            'discount': data.get('discount') or 0,
            'remarks': data.get('remarks') or '',
        }


class ManualPaymentForm(PaymentCollectionForm):
    """Payment recorded by the owner, optionally awaiting verification"""

    STATUS_CHOICES = [
        ('COMPLETED', 'Received'),
        ('PENDING_VERIFICATION', 'Awaiting Verification'),
    ]

    branch = forms.ModelChoiceField(
        queryset=Branch.objects.none(), required=False, empty_label="Student's branch"
    )
    transaction_id = forms.CharField(max_length=100, required=False)
    status = forms.ChoiceField(choices=STATUS_CHOICES, initial='COMPLETED')

    def __init__(self, *args, library=None, **kwargs):
        super().__init__(*args, library=library, **kwargs)
        if library is not None:
            self.fields['branch'].queryset = Branch.objects.for_library(library).order_by('name')

    def service_kwargs(self):
        kwargs = super().service_kwargs()
        data = self.cleaned_data
        kwargs.update({
            'branch_id': data['branch'].pk if data.get('branch') else None,
            'transaction_id': data.get('transaction_id') or '',
            'status': data['status'],
        })
        return kwargs


# =============================================================================
# ADDITIONAL FEES
# =============================================================================

class AdditionalFeeForm(BootstrapFormMixin, forms.ModelForm):
    amount = MoneyField()

    class Meta:
        model = AdditionalFee
        fields = ['name', 'branch', 'amount', 'description', 'is_active']
        widgets = {'description': forms.Textarea(attrs={'rows': 2})}

    def __init__(self, *args, library=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['branch'].queryset = (
            Branch.objects.for_library(library).order_by('name') if library else Branch.objects.none()
        )
        self.fields['branch'].empty_label = 'All branches'


# =============================================================================
# FILTERS
# =============================================================================

class PaymentFilterForm(BootstrapFormMixin, forms.Form):
    search = forms.CharField(required=False, widget=SearchInput(attrs={'placeholder': 'Student, invoice or reference'}))
    status = forms.ChoiceField(choices=[('', 'All Statuses')] + Payment.PAYMENT_STATUS_CHOICES, required=False)
    method = forms.ChoiceField(choices=[('', 'All Methods')] + Payment.PAYMENT_METHOD_CHOICES, required=False)
    branch = forms.ModelChoiceField(queryset=Branch.objects.none(), required=False, empty_label='All Branches')
    start_date = forms.DateField(required=False, widget=DatePickerInput())
    end_date = forms.DateField(required=False, widget=DatePickerInput())

    def __init__(self, *args, library=None, **kwargs):
        super().__init__(*args, **kwargs)
        if library is not None:
            self.fields['branch'].queryset = Branch.objects.for_library(library).order_by('name')

    def clean(self):
        cleaned_data = super().clean()
        start, end = cleaned_data.get('start_date'), cleaned_data.get('end_date')
        if start and end and start > end:
            raise ValidationError('Start date must be before end date.')
        return cleaned_data

    def service_filters(self):
        data = self.cleaned_data
        return {
            'search': data.get('search') or None,
            'status': data.get('status') or None,
            'method': data.get('method') or None,
            'branch': data['branch'].pk if data.get('branch') else None,
            'start_date': data.get('start_date'),
            'end_date': data.get('end_date'),
        }
