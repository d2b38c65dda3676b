from decimal import Decimal
from uuid import UUID
from datetime import date, datetime, time
from django.db.models import Model, QuerySet


def json_safe(obj):
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (UUID,)):
        return str(obj)
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, Model):
        to_wire = getattr(obj, "to_wire", None)
        if to_wire is not None:
            return json_safe(to_wire())
        return json_safe(obj.pk)
    if isinstance(obj, QuerySet):
        return [json_safe(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [json_safe(v) for v in obj]
    return str(obj)
