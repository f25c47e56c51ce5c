# attendance/urls.py

from django.urls import path
from . import views

app_name = 'attendance'

urlpatterns = [
    path('', views.attendance_logs, name='attendance_logs'),
    path('logs/', views.attendance_logs_json, name='attendance_logs_json'),
    path('stats/', views.attendance_stats, name='attendance_stats'),
    path('scan/', views.scan_student, name='scan_student'),
    path('kiosk/', views.kiosk, name='kiosk'),
    path('kiosk/scan/', views.kiosk_scan, name='kiosk_scan'),
    path('<uuid:pk>/update/', views.update_record, name='update_record'),
]
