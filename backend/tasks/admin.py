from django.contrib import admin
from .models import OrderTask


@admin.register(OrderTask)
class OrderTaskAdmin(admin.ModelAdmin):
    list_display = ['name', 'order', 'assignee', 'due_date', 'is_complete', 'completed_at']
    list_filter = ['is_complete']
    search_fields = ['name', 'order__name']
