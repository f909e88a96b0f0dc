from django.contrib import admin
from .models import CustomUser, Organization


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    """Admin configuration for tenants"""
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name']
    readonly_fields = ['created_at']


@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    """Admin configuration for CustomUser model"""
    list_display = ['email', 'name', 'organization', 'role', 'is_active']
    list_filter = ['organization', 'role', 'is_active']
    search_fields = ['email', 'name']
    readonly_fields = ['last_login', 'date_joined']

    fieldsets = (
        ('User Information', {
            'fields': ('email', 'name', 'organization')
        }),
        ('Role & Status', {
            'fields': ('role', 'is_active')
        }),
        ('Authentication', {
            'fields': ('password', 'last_login', 'date_joined')
        }),
    )
