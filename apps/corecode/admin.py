from django.contrib import admin

from .models import ClassGroup, SchoolSettings


@admin.register(SchoolSettings)
class SchoolSettingsAdmin(admin.ModelAdmin):
    list_display = ('__str__', 'billing_cycle', 'payment_due_date', 'transport_due_date',
                    'auto_promotion_enabled', 'auto_promotion_date')
    fieldsets = (
        ('School', {
            'fields': ('school_name',)
        }),
        ('Billing', {
            'fields': ('billing_cycle', 'payment_due_date', 'transport_due_date')
        }),
        ('Promotions', {
            'fields': ('auto_promotion_enabled', 'auto_promotion_date', 'last_promotion_date')
        }),
    )

    readonly_fields = ('last_promotion_date',)

    def has_add_permission(self, request):
        return not SchoolSettings.objects.exists()


@admin.register(ClassGroup)
class ClassGroupAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'standard_fee', 'class_list')
    prepopulated_fields = {'slug': ('name',)}
    search_fields = ('name', 'slug')

    def class_list(self, obj):
        return ', '.join(obj.classes or [])
    class_list.short_description = 'Classes'
