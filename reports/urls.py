"""
REPORTS App - URL Configuration
"""

from django.urls import path
from . import views

app_name = 'reports'

urlpatterns = [
    # Operations dashboard (dispatchers/admins)
    path('dashboard/',
         views.dashboard_stats,
         name='dashboard'),
]
