# core/urls.py
from django.urls import path
from . import views

app_name = 'core'

urlpatterns = [
     path('', views.dashboard, name='dashboard'),
     path('dashboard/stats/', views.dashboard_stats, name='dashboard_stats'),
]
