from rest_framework import serializers

from .models import MaterialUsageLog


class SyncDownSerializer(serializers.Serializer):
    """Epoch milliseconds or ISO 8601; blank or 0 asks for everything."""

    lastSyncTimestamp = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class SyncUpSerializer(serializers.Serializer):
    state = serializers.DictField()


class JobRefSerializer(serializers.Serializer):
    jobId = serializers.CharField(max_length=64)


class CompleteJobSerializer(JobRefSerializer):
    actuals = serializers.DictField()


class StartJobSerializer(JobRefSerializer):
    startedBy = serializers.CharField(max_length=150, required=False, allow_blank=True)


class WorkOrderSerializer(JobRefSerializer):
    materials = serializers.DictField(required=False)


class LogUsageSerializer(JobRefSerializer):
    materials = serializers.DictField()
    loggedBy = serializers.CharField(max_length=150, required=False, allow_blank=True)
    logType = serializers.ChoiceField(
        choices=[c for c, _ in MaterialUsageLog.LOG_TYPE_CHOICES],
        default=MaterialUsageLog.ESTIMATED,
    )
