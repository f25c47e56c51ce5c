"""
Owner plan catalogue.
"""

from decimal import Decimal

import pytest

from subscriptions.models import Plan
from subscriptions.services import PlanService
from utils.exceptions import NotFound, ValidationFailed


def plan_data(**overrides):
    data = {
        'name': " Evening Shift ",
        'price': '750',
        'duration': '1',
        'duration_unit': 'MONTHS',
        'hours_per_day': 4,
    }
    data.update(overrides)
    return data


def test_create_plan(library):
    plan = PlanService.create_plan(library, plan_data())

    assert plan.name == "Evening Shift"
    assert plan.price == Decimal('750')
    assert plan.duration == 1
    assert plan.branch is None
    assert plan.library == library
    assert plan.is_active


def test_create_plan_for_one_branch(library, branch):
    plan = PlanService.create_plan(library, plan_data(branch_id=str(branch.pk)))
    assert plan.branch == branch


@pytest.mark.parametrize('overrides, message', [
    ({'price': ''}, "required"),
    ({'price': '-1'}, "price"),
    ({'price': 'free'}, "price"),
    ({'duration': '0'}, "duration"),
    ({'duration': 'soon'}, "duration"),
    ({'name': '  '}, "name"),
])
def test_create_plan_rejects_bad_input(library, overrides, message):
    with pytest.raises(ValidationFailed, match=message):
        PlanService.create_plan(library, plan_data(**overrides))
    assert not Plan.objects.exists()


def test_plan_branch_must_belong_to_library(library, other_branch):
    with pytest.raises(NotFound):
        PlanService.create_plan(library, plan_data(branch_id=str(other_branch.pk)))


def test_update_plan(library, plan, branch):
    updated = PlanService.update_plan(library, plan.pk, {'price': '1200', 'branch_id': str(branch.pk)})
    assert updated.price == Decimal('1200')
    assert updated.branch == branch

    updated = PlanService.update_plan(library, plan.pk, {'branch_id': 'all', 'is_active': False})
    assert updated.branch is None
    assert not updated.is_active


def test_other_library_cannot_touch_plan(other_library, plan):
    with pytest.raises(NotFound):
        PlanService.update_plan(other_library, plan.pk, {'price': '1'})
    with pytest.raises(NotFound):
        PlanService.delete_plan(other_library, plan.pk)


def test_delete_unused_plan(library, plan):
    assert PlanService.delete_plan(library, plan.pk) is True
    assert not Plan.objects.filter(pk=plan.pk).exists()


def test_delete_refused_once_subscriptions_exist(library, plan, student, make_subscription):
    make_subscription(student)
    with pytest.raises(ValidationFailed, match="Deactivate"):
        PlanService.delete_plan(library, plan.pk)
    assert Plan.objects.filter(pk=plan.pk).exists()


def test_owner_plans_by_branch(library, plan, branch, branch_b, other_library):
    local = PlanService.create_plan(library, plan_data(name="Branch Only", branch_id=str(branch_b.pk)))
    PlanService.create_plan(other_library, plan_data(name="Elsewhere"))

    assert set(PlanService.get_owner_plans(library)) == {plan, local}
    assert list(PlanService.get_owner_plans(library, branch_id=branch.pk)) == [plan]
    assert set(PlanService.get_owner_plans(library, branch_id=branch_b.pk)) == {plan, local}
