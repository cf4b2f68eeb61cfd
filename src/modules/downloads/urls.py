"""Download URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.downloads.views import ResolveTokenView, RetrieveFileView

urlpatterns = [
    path("downloads/<str:token>/", ResolveTokenView.as_view(), name="download-resolve"),
    path("downloads/<str:token>/file/", RetrieveFileView.as_view(), name="download-file"),
]
