from django.contrib import admin

from .extra_billing import page_totals
from .models import ExpenseRecord, ExtraBillingPageRecord


class FinanceSnapshotAdmin(admin.ModelAdmin):
    readonly_fields = ('record_id', 'data', 'updated_at')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(ExpenseRecord)
class ExpenseRecordAdmin(FinanceSnapshotAdmin):
    list_display = ('expense_date', 'purpose', 'category', 'amount', 'is_reversed')
    list_filter = ('category', 'is_reversed', 'expense_date')
    search_fields = ('purpose', 'record_id')


@admin.register(ExtraBillingPageRecord)
class ExtraBillingPageRecordAdmin(FinanceSnapshotAdmin):
    list_display = ('name', 'created_on', 'entry_count', 'collected')
    search_fields = ('name',)

    def entry_count(self, obj):
        return page_totals(obj.to_record()).active_entries
    entry_count.short_description = 'Entries'

    def collected(self, obj):
        return page_totals(obj.to_record()).total_collected
