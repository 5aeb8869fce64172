# orders/audit.py
"""
Audit trail for orders.
The view sets `order._audit_user` before saving; signals call into here.
"""
from orders.models import AuditLog

IGNORED_FIELDS = ("created_at", "updated_at")

CREATED_MESSAGE = "Created a new record."
DELETED_MESSAGE = "Record has been deleted."
SYSTEM_FIELDS_MESSAGE = "Updated system fields"


def headline(field: str) -> str:
    """'financial_status' -> 'Financial Status'"""
    return field.replace("_", " ").strip().title()


def snapshot(instance) -> dict:
    return {f.attname: getattr(instance, f.attname) for f in instance._meta.concrete_fields}


def changed_fields(old: dict, new: dict) -> dict:
    return {name: value for name, value in new.items() if old.get(name) != value}


def build_update_message(old: dict, changes: dict) -> str:
    messages = []
    for field, new_value in changes.items():
        if field in IGNORED_FIELDS:
            continue
        old_value = old.get(field)
        name = headline(field)
        if old_value in (None, ""):
            messages.append(f"Added {name}: {new_value}")
        elif new_value in (None, ""):
            messages.append(f"Removed {name}")
        else:
            messages.append(f"Updated {name} from {old_value} to {new_value}")
    return ", ".join(messages) or SYSTEM_FIELDS_MESSAGE


def log_order_created(order, user=None):
    return AuditLog.record(
        order=order,
        event=AuditLog.Event.CREATED,
        message=CREATED_MESSAGE,
        user=user,
        new_values=snapshot(order),
    )


def log_order_updated(order, old: dict, user=None):
    changes = changed_fields(old, snapshot(order))
    if not changes:
        return None
    return AuditLog.record(
        order=order,
        event=AuditLog.Event.UPDATED,
        message=build_update_message(old, changes),
        user=user,
        old_values={name: old.get(name) for name in changes},
        new_values=changes,
    )


def log_order_deleted(order, user=None):
    return AuditLog.record(
        order=order,
        event=AuditLog.Event.DELETED,
        message=DELETED_MESSAGE,
        user=user,
        old_values=snapshot(order),
    )
