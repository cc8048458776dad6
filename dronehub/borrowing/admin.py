from django.contrib import admin
from .models import BorrowRequest, BorrowHistory


class BorrowHistoryInline(admin.TabularInline):
    model = BorrowHistory
    extra = 0
    readonly_fields = ['action', 'performed_by', 'condition_report', 'remarks', 'created_at']
    can_delete = False


@admin.register(BorrowRequest)
class BorrowRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'drone', 'start_date', 'end_date', 'status', 'created_at']
    list_filter = ['status', 'start_date']
    search_fields = ['purpose', 'user__email', 'user__name', 'drone__name']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    inlines = [BorrowHistoryInline]
    readonly_fields = ['created_at', 'updated_at']


@admin.register(BorrowHistory)
class BorrowHistoryAdmin(admin.ModelAdmin):
    list_display = ['request', 'action', 'performed_by', 'created_at']
    list_filter = ['action', 'created_at']
    search_fields = ['remarks', 'condition_report']
    ordering = ['-created_at']
    readonly_fields = ['created_at']
