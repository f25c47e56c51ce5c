# accounts/views.py
from django.views.decorators.cache import never_cache
from django.views.decorators.http import require_POST
from django.shortcuts import render, redirect
from django.contrib.auth import login, logout, authenticate
from django.contrib import messages
from django.utils.http import url_has_allowed_host_and_scheme

from utils.exceptions import LibraryDeskError
from utils.utils import run_service, json_result
from .decorators import owner_required
from .forms import LoginForm, StaffForm
from .services import StaffService, get_staff_profile, staff_to_dict


def logout_view(request):
    """Handle user logout"""
    logout(request)
    messages.success(request, "You have been successfully logged out.")
    return redirect('accounts:login')


@never_cache
def login_view(request):
    if request.user.is_authenticated and getattr(request, 'profile', None):
        return redirect('core:dashboard')

    if request.method == 'POST':
        form = LoginForm(request.POST)

        if form.is_valid():
            user = authenticate(
                request,
                email=form.cleaned_data['email'],
                password=form.cleaned_data['password'],
            )

            if user is not None:
                login(request, user)

                if not form.cleaned_data.get('remember_me'):
                    request.session.set_expiry(0)
                else:
                    request.session.set_expiry(1209600)

                next_url = request.GET.get('next') or request.POST.get('next')
                if next_url and url_has_allowed_host_and_scheme(next_url, {request.get_host()}):
                    return redirect(next_url)

                messages.success(request, f"Welcome back, {user.get_full_name() or user.username}!")
                return redirect('core:dashboard')

            messages.error(request, "Invalid email or password. Please try again.")
            form.add_error(None, "Invalid email or password.")
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = LoginForm()

    return render(request, 'accounts/login.html', {'form': form})


# =============================================================================
# STAFF MANAGEMENT (OWNER)
# =============================================================================

def _staff_initial(profile):
    return {
        'first_name': profile.user.first_name,
        'last_name': profile.user.last_name,
        'email': profile.user.email,
        'username': profile.user.username,
        'phone': profile.phone,
        'branch': profile.branch,
        'is_active': profile.is_active,
    }


@owner_required
def staff_list(request):
    """Staff of the library, ``?format=json`` for pickers"""
    staff = StaffService.get_all_staff(request.library, request.GET.get('branch') or None)

    if request.GET.get('format') == 'json':
        return json_result({'success': True, 'data': [staff_to_dict(profile) for profile in staff]})

    return render(request, 'accounts/staff_list.html', {'staff': staff, 'title': 'Staff'})


@owner_required
def staff_create(request):
    if request.method == 'POST':
        form = StaffForm(request.POST, library=request.library)
        if form.is_valid():
            result = run_service(StaffService.create_staff, request.library, form.cleaned_data)
            if result['success']:
                messages.success(request, f"Staff member '{result['data'].full_name}' created.")
                return redirect('accounts:staff_list')
            messages.error(request, result['error'])
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = StaffForm(library=request.library)

    return render(request, 'accounts/staff_form.html', {'form': form, 'title': 'Add Staff'})


@owner_required
def staff_edit(request, pk):
    try:
        profile = get_staff_profile(request.library, pk)
    except LibraryDeskError as e:
        messages.error(request, e.message)
        return redirect('accounts:staff_list')

    if request.method == 'POST':
        form = StaffForm(request.POST, library=request.library, editing=True)
        if form.is_valid():
            result = run_service(StaffService.update_staff, request.library, pk, form.cleaned_data)
            if result['success']:
                messages.success(request, f"Staff member '{result['data'].full_name}' updated.")
                return redirect('accounts:staff_list')
            messages.error(request, result['error'])
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = StaffForm(initial=_staff_initial(profile), library=request.library, editing=True)

    context = {'form': form, 'staff_member': profile, 'title': f'Edit {profile.full_name}'}
    return render(request, 'accounts/staff_form.html', context)


@owner_required
@require_POST
def staff_delete(request, pk):
    result = run_service(StaffService.delete_staff, request.library, pk)
    if result['success']:
        result['message'] = 'Staff member deleted'
    return json_result(result)
