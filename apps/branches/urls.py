# branches/urls.py

from django.urls import path
from . import views

app_name = 'branches'

urlpatterns = [
    # =============================================================================
    # BRANCH URLS
    # =============================================================================
    path('', views.branch_list, name='branch_list'),
    path('create/', views.branch_create, name='branch_create'),
    path('<uuid:pk>/edit/', views.branch_edit, name='branch_edit'),
    path('<uuid:pk>/delete/', views.branch_delete, name='branch_delete'),
    path('<uuid:pk>/qr/regenerate/', views.regenerate_qr, name='regenerate_qr'),


    # =============================================================================
    # SEAT URLS
    # =============================================================================
    path('<uuid:pk>/seats/', views.seat_grid, name='seat_grid'),
    path('<uuid:pk>/seats/create/', views.seat_create, name='seat_create'),
    path('<uuid:pk>/seats/bulk-create/', views.seat_bulk_create, name='seat_bulk_create'),
    path('seats/<uuid:seat_id>/delete/', views.seat_delete, name='seat_delete'),
    path('seats/<uuid:seat_id>/history/', views.seat_history, name='seat_history'),


    # =============================================================================
    # LOCKER URLS
    # =============================================================================
    path('<uuid:pk>/lockers/', views.locker_grid, name='locker_grid'),
    path('<uuid:pk>/lockers/create/', views.locker_create, name='locker_create'),
    path('lockers/<uuid:locker_id>/delete/', views.locker_delete, name='locker_delete'),
]
