# subscriptions/urls.py

from django.urls import path
from . import views

app_name = 'subscriptions'

urlpatterns = [
    # =============================================================================
    # PLAN URLS
    # =============================================================================
    path('plans/', views.plan_list, name='plan_list'),
    path('plans/create/', views.plan_create, name='plan_create'),
    path('plans/<uuid:pk>/edit/', views.plan_edit, name='plan_edit'),
    path('plans/<uuid:pk>/delete/', views.plan_delete, name='plan_delete'),

    path('expiring/', views.expiring_subscriptions, name='expiring'),
    path('eligible/', views.eligible_subscriptions, name='eligible'),

    # =============================================================================
    # SEAT & LOCKER ASSIGNMENT
    # =============================================================================
    path('<uuid:pk>/seat/assign/', views.assign_seat, name='assign_seat'),
    path('<uuid:pk>/seat/unassign/', views.unassign_seat, name='unassign_seat'),
    path('<uuid:pk>/locker/assign/', views.assign_locker, name='assign_locker'),
    path('<uuid:pk>/locker/unassign/', views.unassign_locker, name='unassign_locker'),
]
