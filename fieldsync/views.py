import functools
import logging

from django.core.exceptions import ValidationError
from rest_framework import permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from .serializers import (
    CompleteJobSerializer,
    JobRefSerializer,
    LogUsageSerializer,
    StartJobSerializer,
    SyncDownSerializer,
    SyncUpSerializer,
    WorkOrderSerializer,
)
from .services import gateway
from .services.errors import NotFound, SyncError
from .utils.jsonsafe import json_safe

logger = logging.getLogger(__name__)


def _success(data, status=200):
    return Response({"status": "success", "data": json_safe(data)}, status=status)


def _error(code, message, status, retryable=False, details=None):
    body = {
        "status": "error",
        "code": code,
        "message": message,
        "retryable": retryable,
    }
    if details:
        body["details"] = json_safe(details)
    return Response(body, status=status)


def _validation_details(exc):
    if hasattr(exc, "error_dict"):
        return exc.message_dict
    return {"non_field_errors": exc.messages}


def _auth_context(request):
    profile = getattr(request.user, "profile", None)
    if profile is None:
        # a login that belongs to no organization
        raise NotFound()
    return gateway.AuthContext(
        organization_id=str(profile.organization_id),
        role=profile.role,
        username=request.user.get_username(),
    )


def sync_endpoint(serializer_class=None):
    """Validate the payload, build the auth context and wrap the envelope."""

    def decorator(view):
        @functools.wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                ctx = _auth_context(request)
                data = None
                if serializer_class is not None:
                    source = request.data if request.method != "GET" else request.query_params
                    ser = serializer_class(data=source)
                    if not ser.is_valid():
                        return _error(
                            "validation_error",
                            "Missing/invalid fields",
                            400,
                            details=ser.errors,
                        )
                    data = ser.validated_data
                return _success(view(request, ctx, data, *args, **kwargs))
            except SyncError as exc:
                return _error(exc.code, exc.message, exc.http_status, exc.retryable)
            except ValidationError as exc:
                return _error(
                    "validation_error",
                    "Missing/invalid fields",
                    400,
                    details=_validation_details(exc),
                )
            except Exception:
                logger.exception("Unhandled error in %s", view.__name__)
                return _error("server_error", "Internal server error", 500)

        return wrapper

    return decorator


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated])
@sync_endpoint(SyncDownSerializer)
def sync_down(request, ctx, data):
    """Delta pull. ``lastSyncTimestamp`` comes from the query string or body."""
    return gateway.sync_down(ctx, data.get("lastSyncTimestamp"))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
@sync_endpoint(SyncUpSerializer)
def sync_up(request, ctx, data):
    return gateway.sync_up(ctx, data["state"])


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
@sync_endpoint(CompleteJobSerializer)
def complete_job(request, ctx, data):
    job = gateway.complete_job(ctx, data["jobId"], data["actuals"])
    return {"job": job.to_wire()}


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
@sync_endpoint(JobRefSerializer)
def mark_paid(request, ctx, data):
    job = gateway.mark_paid(ctx, data["jobId"])
    return {"job": job.to_wire()}


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
@sync_endpoint(StartJobSerializer)
def start_job(request, ctx, data):
    job = gateway.start_job(ctx, data["jobId"], data.get("startedBy", ""))
    return {"job": job.to_wire()}


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
@sync_endpoint(WorkOrderSerializer)
def issue_work_order(request, ctx, data):
    job = gateway.issue_work_order(ctx, data["jobId"], data.get("materials"))
    return {"job": job.to_wire()}


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
@sync_endpoint(LogUsageSerializer)
def log_material_usage(request, ctx, data):
    entries = gateway.log_material_usage(
        ctx,
        data["jobId"],
        data["materials"],
        data.get("loggedBy", ""),
        data["logType"],
    )
    return {"logsCreated": len(entries), "logs": [e.to_wire() for e in entries]}


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
@sync_endpoint(JobRefSerializer)
def delete_job(request, ctx, data):
    return {"deleted": gateway.delete_job(ctx, data["jobId"])}
