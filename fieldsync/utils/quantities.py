from django.core.exceptions import ValidationError


def q(x):
    return round(float(x), 4)


def as_quantity(value, label="quantity"):
    """Coerce a client quantity to a non-negative float; blank means zero."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValidationError({label: "Must be a number."})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError({label: "Must be a number."})
    if number != number or number in (float("inf"), float("-inf")):
        raise ValidationError({label: "Must be a finite number."})
    if number < 0:
        raise ValidationError({label: "Must not be negative."})
    return number
