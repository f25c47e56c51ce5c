# accounts/admin.py

from django.contrib import admin
from django.contrib.auth.models import User
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Library, UserProfile


# =============================================================================
# INLINE ADMINS
# =============================================================================

class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    fk_name = 'user'
    verbose_name_plural = 'Library Profile'
    fields = ('library', 'role', 'branch', 'phone', 'is_active')


# =============================================================================
# MODEL ADMINS
# =============================================================================

@admin.register(Library)
class LibraryAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'city', 'country', 'timezone', 'currency_code', 'is_active']
    list_filter = ['is_active', 'country']
    search_fields = ['name', 'slug', 'contact_email', 'contact_phone']
    prepopulated_fields = {'slug': ('name',)}
    readonly_fields = ['id', 'created_at', 'updated_at']

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'slug', 'receipt_name', 'is_active')
        }),
        ('Location & Contact', {
            'fields': ('address', 'city', 'country', 'contact_phone', 'contact_email')
        }),
        ('Settings', {
            'fields': ('timezone', 'currency_code', 'currency_symbol')
        }),
        ('System', {
            'fields': ('id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'library', 'role', 'branch', 'is_active']
    list_filter = ['role', 'is_active', 'library']
    search_fields = ['user__username', 'user__email', 'user__first_name', 'user__last_name']
    raw_id_fields = ['user']


class UserAdmin(BaseUserAdmin):
    inlines = (UserProfileInline,)


admin.site.unregister(User)
admin.site.register(User, UserAdmin)
