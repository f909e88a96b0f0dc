"""
URL configuration for wrkspace_project.

Approval endpoints live under /core/approval/.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('core/', include('core.urls')),
]
