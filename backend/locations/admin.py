from django.contrib import admin
from .models import Rickhouse


@admin.register(Rickhouse)
class RickhouseAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'capacity_barrels', 'is_active', 'created_at']
    list_filter = ['is_active', 'company']
    search_fields = ['name']
    ordering = ['name']
