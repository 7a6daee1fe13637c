from django.contrib import admin
from .models import SpiritType, MashBill, Batch, Order, Barrel


@admin.register(SpiritType)
class SpiritTypeAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']


@admin.register(MashBill)
class MashBillAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'created_at']
    list_filter = ['company']
    search_fields = ['name']


@admin.register(Batch)
class BatchAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'company', 'mash_bill', 'status', 'completed_at', 'created_at']
    list_filter = ['status', 'company']
    ordering = ['-created_at']


class BarrelInline(admin.TabularInline):
    model = Barrel
    extra = 0
    fields = ['sku', 'batch', 'rickhouse']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'spirit_type', 'status_name', 'quantity', 'owner', 'created_at']
    list_filter = ['status_name', 'company', 'spirit_type']
    search_fields = ['name']
    ordering = ['-created_at']
    inlines = [BarrelInline]
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Barrel)
class BarrelAdmin(admin.ModelAdmin):
    list_display = ['sku', 'company', 'order', 'batch', 'rickhouse', 'created_at']
    list_filter = ['company', 'rickhouse']
    search_fields = ['sku']
