"""
URL Configuration for Approval app.
Handles approval chains, approval progress and delegations.
"""
from django.urls import path
from . import views

app_name = 'approval'

urlpatterns = [
    # Chain endpoints
    path('chains/', views.chain_list, name='chain-list'),
    path('chains/select/', views.chain_select, name='chain-select'),
    path('chains/<int:pk>/', views.chain_detail, name='chain-detail'),

    # Progress endpoints
    path('progress/', views.progress_list, name='progress-list'),
    path('progress/pending/', views.progress_pending, name='progress-pending'),
    path('progress/<int:pk>/', views.progress_detail, name='progress-detail'),
    path('progress/<int:pk>/decision/', views.progress_decision, name='progress-decision'),

    # Delegation endpoints
    path('delegations/', views.delegation_list, name='delegation-list'),
    path('delegations/<int:pk>/', views.delegation_detail, name='delegation-detail'),
]
