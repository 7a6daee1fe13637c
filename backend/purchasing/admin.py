from django.contrib import admin
from .models import Supplier, SupplierProduct, PurchaseOrder, PurchaseOrderItem, InventoryReceipt, InventoryReceiptItem


class SupplierProductInline(admin.TabularInline):
    model = SupplierProduct
    extra = 0
    fields = ['product_name', 'sku', 'unit_of_measure', 'current_price', 'is_active']


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['supplier_name', 'company', 'supplier_type', 'contact_person', 'email', 'is_active']
    list_filter = ['supplier_type', 'is_active']
    search_fields = ['supplier_name', 'contact_person', 'email']
    inlines = [SupplierProductInline]


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    fields = ['supplier_product', 'quantity', 'unit_price', 'total_price', 'received_quantity']
    readonly_fields = ['total_price', 'received_quantity']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'supplier', 'order_date', 'status', 'payment_status', 'get_total', 'created_by']
    list_filter = ['status', 'payment_status', 'order_date']
    search_fields = ['po_number', 'supplier__supplier_name', 'notes']
    ordering = ['-order_date', '-created_at']
    inlines = [PurchaseOrderItemInline]
    readonly_fields = ['created_at', 'updated_at']

    def get_total(self, obj):
        return f"{obj.total_amount:.2f} {obj.currency}"
    get_total.short_description = 'Total'


class InventoryReceiptItemInline(admin.TabularInline):
    model = InventoryReceiptItem
    extra = 0


@admin.register(InventoryReceipt)
class InventoryReceiptAdmin(admin.ModelAdmin):
    list_display = ['id', 'purchase_order', 'receipt_date', 'received_by']
    list_filter = ['receipt_date']
    inlines = [InventoryReceiptItemInline]
