# students/urls.py

"""
URL Configuration for Students Module
1. Regular Views (views.py) - pages, JSON actions and exports
2. HTMX Views (htmx_views.py) - Dynamic search and filtering

All URLs use UUID primary keys
"""

from django.urls import path
from . import views, htmx_views

app_name = 'students'

urlpatterns = [
    # =============================================================================
    # STUDENTS
    # =============================================================================
    path('', views.student_list, name='student_list'),
    path('list/', views.student_list_json, name='student_list_json'),
    path('create/', views.student_create, name='student_create'),  # Wizard view
    path('<uuid:pk>/', views.student_profile, name='student_profile'),
    path('<uuid:pk>/edit/', views.student_edit, name='student_edit'),
    path('<uuid:pk>/block/', views.student_block, name='student_block'),
    path('<uuid:pk>/verify-id/', views.student_verify_id, name='student_verify_id'),
    path('<uuid:pk>/delete/', views.student_delete, name='student_delete'),

    # Notes & tickets
    path('<uuid:pk>/notes/add/', views.student_add_note, name='student_add_note'),
    path('notes/<uuid:note_pk>/delete/', views.student_delete_note, name='student_delete_note'),
    path('<uuid:pk>/tickets/add/', views.ticket_create, name='ticket_create'),
    path('tickets/', views.ticket_list, name='ticket_list'),
    path('tickets/<uuid:ticket_pk>/status/', views.ticket_update_status, name='ticket_update_status'),

    # HTMX Views
    path('search/', htmx_views.student_search, name='student_search'),
    path('htmx/quick-stats/', htmx_views.student_quick_stats, name='student_quick_stats'),

    # Exports
    path('export/excel/', views.export_students_excel, name='export_students_excel'),
    path('export/pdf/', views.export_students_pdf, name='export_students_pdf'),
]
