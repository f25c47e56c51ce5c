# core/views.py

from django.shortcuts import render
from django.views.decorators.http import require_GET
import logging

from accounts.decorators import member_required
from branches.models import Branch
from utils.utils import json_result

from .stats import get_dashboard_stats

logger = logging.getLogger(__name__)


def _dashboard_branch_id(request):
    if request.profile.is_staff_member:
        return request.profile.branch_id
    return request.GET.get('branch') or None


@member_required
def dashboard(request):
    branch_id = _dashboard_branch_id(request)
    context = {
        'stats': get_dashboard_stats(request.library, branch_id),
        'branches': Branch.objects.for_library(request.library).order_by('name'),
        'selected_branch': branch_id,
        'title': 'Dashboard',
    }
    return render(request, 'core/dashboard.html', context)


@member_required
@require_GET
def dashboard_stats(request):
    return json_result({
        'success': True,
        'data': get_dashboard_stats(request.library, _dashboard_branch_id(request)),
    })
