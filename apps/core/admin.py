from django.contrib import admin
from .models import (
    Branch, User, ServiceType, Room, Slot, Booking, Assessment,
    Notification, WaitingListEntry, AuditLog, SystemSetting,
)


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ['name', 'contact_number', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'address']


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'phone_number', 'role', 'branch', 'is_active', 'last_login']
    list_filter = ['role', 'is_active', 'branch']
    search_fields = ['name', 'email', 'phone_number']
    exclude = ['password']


@admin.register(ServiceType)
class ServiceTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'category', 'default_capacity', 'duration_minutes', 'is_active']
    list_filter = ['category', 'is_active']
    search_fields = ['name', 'code']


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ['room_number', 'branch', 'room_type', 'capacity', 'is_active']
    list_filter = ['room_type', 'is_active', 'branch']
    search_fields = ['room_number']


@admin.register(Slot)
class SlotAdmin(admin.ModelAdmin):
    list_display = ['date', 'start_time', 'end_time', 'branch', 'teacher', 'capacity', 'is_blocked']
    list_filter = ['is_blocked', 'branch']
    search_fields = ['teacher__name', 'branch__name']
    ordering = ['-date', 'start_time']


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['student', 'slot', 'status', 'attended', 'is_late_cancellation', 'created_at']
    list_filter = ['status', 'is_late_cancellation']
    search_fields = ['student__name', 'student__phone_number']
    ordering = ['-created_at']


@admin.register(Assessment)
class AssessmentAdmin(admin.ModelAdmin):
    list_display = ['booking', 'teacher', 'score', 'assessed_at']
    search_fields = ['booking__student__name', 'teacher__name']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['user', 'type', 'channel', 'status', 'is_read', 'created_at']
    list_filter = ['type', 'channel', 'status', 'is_read']
    search_fields = ['title', 'user__name']


@admin.register(WaitingListEntry)
class WaitingListEntryAdmin(admin.ModelAdmin):
    list_display = ['slot', 'student', 'priority', 'expires_at']
    ordering = ['slot', 'priority']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'user', 'action', 'entity_type', 'entity_id']
    list_filter = ['action', 'entity_type']
    search_fields = ['entity_id', 'request_id']
    ordering = ['-timestamp']


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'updated_by', 'updated_at']
