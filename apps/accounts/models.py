# accounts/models.py

from django.contrib.auth.models import User
from django.db import models
from django_countries.fields import CountryField
from django.core.validators import RegexValidator
from django.core.exceptions import ValidationError
import logging
import pycountry
from zoneinfo import available_timezones

from utils.models import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATORS
# =============================================================================

phone_validator = RegexValidator(
    regex=r'^\d{10}$',
    message="Phone number must be exactly 10 digits."
)


def get_currency_choices():
    """ISO 4217 currencies as (code, "Name (CODE)") sorted by name"""
    currencies = [
        (currency.alpha_3, f"{currency.name} ({currency.alpha_3})")
        for currency in pycountry.currencies
    ]
    return sorted(currencies, key=lambda choice: choice[1])


# =============================================================================
# LIBRARY MODEL (TENANT)
# =============================================================================

class Library(BaseModel):
    """A library / co-working account. Every tenant row points at one."""

    # -------------------------------------------------------------------------
    # BASIC INFORMATION
    # -------------------------------------------------------------------------

    name = models.CharField("Library Name", max_length=191)
    slug = models.SlugField("Slug", max_length=100, unique=True)
    receipt_name = models.CharField(
        "Receipt Name",
        max_length=191,
        blank=True,
        help_text="Name to appear on receipts and invoices"
    )

    # -------------------------------------------------------------------------
    # LOCATION & CONTACT
    # -------------------------------------------------------------------------

    address = models.TextField("Address", blank=True)
    city = models.CharField("City", max_length=100, blank=True)
    country = CountryField("Country", blank_label='(Select Country)', default='IN')
    contact_phone = models.CharField(
        "Contact Phone", max_length=15, blank=True, validators=[phone_validator]
    )
    contact_email = models.EmailField("Contact Email", blank=True)

    # -------------------------------------------------------------------------
    # SYSTEM SETTINGS
    # -------------------------------------------------------------------------

    timezone = models.CharField(
        "Timezone",
        max_length=50,
        choices=[(tz, tz) for tz in sorted(available_timezones())],
        default='Asia/Kolkata',
        help_text="Library's timezone for attendance and billing months"
    )
    currency_code = models.CharField(
        "Currency Code",
        max_length=3,
        choices=get_currency_choices,
        default='INR',
        help_text="ISO 4217 currency code"
    )
    currency_symbol = models.CharField("Currency Symbol", max_length=5, default='₹')

    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "Library"
        verbose_name_plural = "Libraries"
        ordering = ['name']

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if self.currency_code:
            code = self.currency_code.upper()
            if pycountry.currencies.get(alpha_3=code) is None:
                raise ValidationError(
                    {'currency_code': f"'{self.currency_code}' is not a valid ISO 4217 currency code"}
                )
            self.currency_code = code

    @property
    def display_name(self):
        return self.receipt_name or self.name


# =============================================================================
# USER PROFILE MODEL
# =============================================================================

class UserProfile(BaseModel):
    """Owner or staff member of one library"""

    ROLE_CHOICES = [
        ('OWNER', 'Owner'),
        ('STAFF', 'Staff'),
    ]

    # -------------------------------------------------------------------------
    # CORE RELATIONSHIPS
    # -------------------------------------------------------------------------

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='library_profile'
    )
    library = models.ForeignKey(
        Library,
        on_delete=models.CASCADE,
        related_name='profiles'
    )
    role = models.CharField("Role", max_length=10, choices=ROLE_CHOICES, default='STAFF')
    branch = models.ForeignKey(
        'branches.Branch',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='staff_profiles',
        help_text="Home branch for staff members"
    )

    phone = models.CharField("Phone", max_length=15, blank=True, validators=[phone_validator])
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "User Profile"
        verbose_name_plural = "User Profiles"
        ordering = ['user__first_name', 'user__last_name']

    def __str__(self):
        return f"{self.full_name} ({self.get_role_display()})"

    def clean(self):
        super().clean()
        if self.branch_id and self.branch.library_id != self.library_id:
            raise ValidationError({'branch': "Branch belongs to another library"})

    @property
    def full_name(self):
        return self.user.get_full_name() or self.user.get_username()

    @property
    def is_owner(self):
        return self.role == 'OWNER'

    @property
    def is_staff_member(self):
        return self.role == 'STAFF'
