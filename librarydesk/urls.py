"""
URL configuration for the librarydesk project.
"""
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    # Django admin
    path('admin/', admin.site.urls),

    # Accounts app - login, logout
    path('accounts/', include(('accounts.urls', 'accounts'), namespace='accounts')),

    # Core app - owner / staff dashboard
    path('', include(('core.urls', 'core'), namespace='core')),

    # Branches app - branches, seats, lockers, QR codes
    path('branches/', include(('branches.urls', 'branches'), namespace='branches')),

    # Students app
    path('students/', include(('students.urls', 'students'), namespace='students')),

    # Subscriptions app - plans, seat / locker assignment
    path('subscriptions/', include(('subscriptions.urls', 'subscriptions'), namespace='subscriptions')),

    # Fees app - payments, invoices, additional fees
    path('fees/', include(('fees.urls', 'fees'), namespace='fees')),

    # Khatabook app - staff cash ledger and handovers
    path('khatabook/', include(('khatabook.urls', 'khatabook'), namespace='khatabook')),

    # Attendance app - QR check-in / check-out
    path('attendance/', include(('attendance.urls', 'attendance'), namespace='attendance')),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
