# branches/admin.py

from django.contrib import admin
from .models import Branch, Seat, Locker


class SeatInline(admin.TabularInline):
    model = Seat
    extra = 0
    fields = ('number', 'section', 'is_active')


class LockerInline(admin.TabularInline):
    model = Locker
    extra = 0
    fields = ('number', 'notes', 'is_active')


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ['name', 'library', 'city', 'contact_phone', 'is_24_hours', 'is_active']
    list_filter = ['is_active', 'is_24_hours', 'library']
    search_fields = ['name', 'city', 'area', 'pincode']
    readonly_fields = ['id', 'qr_code', 'created_at', 'updated_at']
    inlines = [SeatInline, LockerInline]

    def save_formset(self, request, form, formset, change):
        instances = formset.save(commit=False)
        for instance in instances:
            instance.library = form.instance.library
            instance.save()
        for obj in formset.deleted_objects:
            obj.delete()
        formset.save_m2m()


@admin.register(Seat)
class SeatAdmin(admin.ModelAdmin):
    list_display = ['number', 'branch', 'section', 'is_active']
    list_filter = ['is_active', 'branch']
    search_fields = ['number', 'branch__name']


@admin.register(Locker)
class LockerAdmin(admin.ModelAdmin):
    list_display = ['number', 'branch', 'is_active']
    list_filter = ['is_active', 'branch']
    search_fields = ['number', 'branch__name']
