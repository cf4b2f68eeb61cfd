"""Download API input serializers."""

from __future__ import annotations

from rest_framework import serializers


class RetrieveFileSerializer(serializers.Serializer):
    file_index = serializers.IntegerField()
