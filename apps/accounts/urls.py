# accounts/urls.py

from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('login/', views.login_view, name='login'),
    path('logout/', views.logout_view, name='logout'),

    # =============================================================================
    # STAFF MANAGEMENT
    # =============================================================================
    path('staff/', views.staff_list, name='staff_list'),
    path('staff/create/', views.staff_create, name='staff_create'),
    path('staff/<uuid:pk>/edit/', views.staff_edit, name='staff_edit'),
    path('staff/<uuid:pk>/delete/', views.staff_delete, name='staff_delete'),
]
