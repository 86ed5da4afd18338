from django.contrib import admin
from django.utils.html import format_html

from .models import PendingPromotionRecord, PromotionLog, StudentRecord, TransferredStudentRecord


class SnapshotAdmin(admin.ModelAdmin):
    """Snapshots are written by the billing engine only."""

    search_fields = ('student_id', 'full_name', 'class_name')
    readonly_fields = ('student_id', 'full_name', 'class_name', 'class_group', 'data', 'updated_at')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(StudentRecord)
class StudentRecordAdmin(SnapshotAdmin):
    list_display = ('student_id', 'full_name', 'class_name', 'class_group', 'has_transport', 'owed_display')
    list_filter = ('class_group', 'has_transport')

    def owed_display(self, obj):
        colour = '#c62828' if obj.total_owed > 0 else '#2e7d32'
        return format_html('<span style="color:{};font-weight:bold;">{}</span>', colour, obj.total_owed)
    owed_display.short_description = 'Owed'


@admin.register(TransferredStudentRecord)
class TransferredStudentRecordAdmin(SnapshotAdmin):
    list_display = ('student_id', 'full_name', 'class_name', 'transfer_date', 'transfer_reason')
    list_filter = ('transfer_date',)


@admin.register(PendingPromotionRecord)
class PendingPromotionRecordAdmin(SnapshotAdmin):
    list_display = ('student_id', 'full_name', 'class_name', 'to_class', 'promotion_date')


@admin.register(PromotionLog)
class PromotionLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'student_id', 'student_name', 'action', 'from_class', 'to_class')
    list_filter = ('action', 'created_at')
    search_fields = ('student_id', 'student_name', 'task_id')
    readonly_fields = ('student_id', 'student_name', 'action', 'from_class', 'to_class',
                       'reason', 'task_id', 'created_at')
