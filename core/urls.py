"""
URL Configuration for Core module.
This module handles core functionality; approval chains live under approval/.
"""
from django.urls import path, include

app_name = 'core'

urlpatterns = [
    # Approval sub-app URLs
    path('approval/', include('core.approval.urls')),
]
