# students/admin.py

from django.contrib import admin
from .models import Student, StudentNote, SupportTicket


class StudentNoteInline(admin.TabularInline):
    model = StudentNote
    extra = 0
    fields = ('content', 'created_by')


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone', 'email', 'library', 'branch', 'govt_id_status', 'is_blocked', 'created_at']
    list_filter = ['is_blocked', 'govt_id_status', 'library']
    search_fields = ['name', 'email', 'phone']
    readonly_fields = ['id', 'password', 'created_at', 'updated_at']
    inlines = [StudentNoteInline]

    def save_formset(self, request, form, formset, change):
        instances = formset.save(commit=False)
        for instance in instances:
            instance.library = form.instance.library
            instance.save()
        for obj in formset.deleted_objects:
            obj.delete()
        formset.save_m2m()


@admin.register(SupportTicket)
class SupportTicketAdmin(admin.ModelAdmin):
    list_display = ['subject', 'student', 'category', 'status', 'created_at']
    list_filter = ['status', 'category', 'library']
    search_fields = ['subject', 'student__name']
