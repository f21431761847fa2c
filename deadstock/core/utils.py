"""Audit logging, snapshots and pagination helpers shared by every app"""
import calendar
import json
import logging

from django.core.paginator import Paginator
from django.core.serializers.json import DjangoJSONEncoder
from django.forms.models import model_to_dict
from rest_framework.response import Response

from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def to_json(value):
    """Make dates, decimals and UUIDs safe for a JSONField"""
    if value is None:
        return None
    return json.loads(json.dumps(value, cls=DjangoJSONEncoder))


def snapshot(instance, fields=None, exclude=None):
    """JSON-safe dict of a model instance's concrete field values"""
    data = model_to_dict(instance, fields=fields, exclude=exclude)
    # model_to_dict skips non-editable fields
    for field in instance._meta.concrete_fields:
        if field.name in data or (fields and field.name not in fields):
            continue
        if exclude and field.name in exclude:
            continue
        data[field.name] = field.value_from_object(instance)
    # m2m values are model instances
    for key, value in list(data.items()):
        if isinstance(value, list) and value and hasattr(value[0], 'pk'):
            data[key] = [item.pk for item in value]
    return to_json(data)


def diff_values(old_values, new_values):
    """{field: {'from': old, 'to': new}} for every field whose value changed"""
    changes = {}
    old_values = old_values or {}
    for key, new in (new_values or {}).items():
        old = old_values.get(key)
        if old != new:
            changes[key] = {'from': old, 'to': new}
    return changes


def create_audit_log(request=None, action=None, entity_type=None, entity_id=None,
                     description='', severity='info', old_values=None, new_values=None,
                     changes=None, user=None):
    """
    Create an audit log entry.

    Args:
        request: request object for user, IP and user agent (optional if user given)
        action: action name (create, update, delete, login, asset_audited...)
        entity_type: model or area acted upon (Asset, Vendor, ScheduledAudit...)
        entity_id: primary key or code of the entity
        description: human-readable summary
        severity: info / warning / error / critical
        old_values, new_values: snapshots before and after the change
        changes: explicit change dict; computed from the snapshots when omitted
        user: user override, None with no request means a system action

    A failure to write the log is logged and never raised.
    """
    try:
        audit_user = user
        if audit_user is None and request is not None and hasattr(request, 'user'):
            audit_user = request.user

        if not action:
            logger.warning(f"Audit log creation skipped: missing action (entity_type={entity_type}, entity_id={entity_id})")
            return None

        old_values = to_json(old_values)
        new_values = to_json(new_values)
        if changes is None and old_values and new_values:
            changes = diff_values(old_values, new_values)

        user_agent = ''
        if request is not None and hasattr(request, 'META'):
            user_agent = request.META.get('HTTP_USER_AGENT', '')[:500]

        return AuditLog.objects.create(
            user=audit_user if audit_user is not None and audit_user.is_authenticated else None,
            action=action,
            entity_type=entity_type or '',
            entity_id=str(entity_id) if entity_id is not None else '',
            description=description or '',
            severity=severity,
            old_values=old_values,
            new_values=new_values,
            changes=to_json(changes) or {},
            ip_address=get_client_ip(request) if request is not None else None,
            user_agent=user_agent,
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def get_page_params(request, default_limit=15, max_limit=200):
    try:
        page = max(int(request.query_params.get('page', 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(request.query_params.get('limit', request.query_params.get('page_size', default_limit)))
    except (TypeError, ValueError):
        limit = default_limit
    return page, min(max(limit, 1), max_limit)


def paginated_response(request, queryset, serializer_class, context=None, default_limit=15):
    """Paginate with Django's Paginator and return the list envelope"""
    page, limit = get_page_params(request, default_limit=default_limit)
    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)

    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    })


def add_months(value, months):
    """Shift a date by whole months, clamping the day to the target month's end"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
