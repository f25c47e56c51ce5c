# utils/admin.py

from django.contrib import admin
from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = [
        'timestamp', 'action', 'content_type', 'object_repr',
        'user_name', 'library_id', 'ip_address'
    ]
    list_filter = ['action', 'timestamp', 'content_type']
    search_fields = ['object_repr', 'user_name', 'user_email', 'object_id', 'library_id']
    readonly_fields = [
        'id', 'content_type', 'object_id', 'object_repr', 'action',
        'changes', 'user_id', 'user_email', 'user_name', 'timestamp',
        'ip_address', 'user_agent', 'change_reason', 'request_path',
        'library_id', 'changes_display'
    ]

    fieldsets = (
        ('What Changed', {
            'fields': ('content_type', 'object_id', 'object_repr', 'action', 'changes_display')
        }),
        ('Who Changed It', {
            'fields': ('user_id', 'user_name', 'user_email')
        }),
        ('When & Where', {
            'fields': ('timestamp', 'library_id', 'ip_address', 'request_path')
        }),
        ('Additional Info', {
            'fields': ('change_reason', 'user_agent'),
            'classes': ('collapse',)
        }),
    )

    def get_queryset(self, request):
        """Library owners with admin access only see their own library's trail"""
        queryset = super().get_queryset(request)
        if request.user.is_superuser:
            return queryset
        profile = getattr(request.user, 'library_profile', None)
        if profile is None:
            return queryset.none()
        return queryset.filter(library_id=str(profile.library_id))

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return request.user.is_superuser

    @admin.display(description='Changes')
    def changes_display(self, obj):
        return obj.get_changes_display()
