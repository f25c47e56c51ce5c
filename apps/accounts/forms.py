# accounts/forms.py
from django import forms

from branches.models import Branch
from utils.forms import BootstrapFormMixin, PhoneInput, validate_phone_number


class LoginForm(forms.Form):
    email = forms.CharField(
        label="Email or username",
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'id': 'userEmail',
            'placeholder': 'Enter your email'
        })
    )
    password = forms.CharField(
        widget=forms.PasswordInput(attrs={
            'class': 'form-control',
            'id': 'userPassword',
            'placeholder': 'Enter your password'
        })
    )
    remember_me = forms.BooleanField(
        required=False,
        widget=forms.CheckboxInput(attrs={
            'class': 'form-check-input',
            'id': 'rememberMe'
        })
    )


class StaffForm(BootstrapFormMixin, forms.Form):
    """Staff account form; the password is optional when editing"""

    first_name = forms.CharField(max_length=150)
    last_name = forms.CharField(max_length=150, required=False)
    email = forms.EmailField()
    username = forms.CharField(max_length=150, required=False, help_text="Defaults to the email")
    phone = forms.CharField(max_length=10, widget=PhoneInput())
    branch = forms.ModelChoiceField(queryset=Branch.objects.none())
    password = forms.CharField(widget=forms.PasswordInput(render_value=False), required=False)
    is_active = forms.BooleanField(required=False, initial=True)

    def __init__(self, *args, library=None, editing=False, **kwargs):
        super().__init__(*args, **kwargs)
        if library is not None:
            self.fields['branch'].queryset = Branch.objects.for_library(library).order_by('name')
        self.fields['password'].required = not editing
        if not editing:
            del self.fields['is_active']

    def clean_phone(self):
        phone = self.cleaned_data.get('phone')
        validate_phone_number(phone)
        return phone
