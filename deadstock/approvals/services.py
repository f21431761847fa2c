"""Approval decisions and their effects on assets"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone
from rest_framework import status

from deadstock.assets import lifecycle
from deadstock.assets.models import Asset
from deadstock.core.exceptions import BusinessRuleError
from deadstock.core.notifications import notify_users
from deadstock.core.utils import create_audit_log
from deadstock.maintenance.models import Maintenance
from .models import Approval

logger = logging.getLogger('deadstock.approvals')

MAINTENANCE_PRIORITY = {'Low': 'Low', 'Medium': 'Medium', 'High': 'High', 'Urgent': 'Critical'}


def _estimated_cost(approval):
    try:
        return max(Decimal(str(approval.request_data.get('estimated_cost') or 0)), Decimal('0'))
    except (InvalidOperation, ValueError):
        return Decimal('0')


def _apply_approval_effects(approval, user, request=None):
    """Scrap flags the asset as dead stock, Repair books corrective maintenance"""
    asset = approval.asset
    reason = approval.request_data.get('reason') or approval.comments or f"{approval.request_type} request #{approval.pk}"

    if approval.request_type == Approval.TYPE_SCRAP and asset is not None:
        if asset.status in (Asset.STATUS_DISPOSED, Asset.STATUS_READY_FOR_SCRAP):
            return None
        lifecycle.move_to_dead_stock(asset, f"Scrap request #{approval.pk} approved: {reason}", user=user, request=request)
        return {'asset_status': asset.status}

    if approval.request_type == Approval.TYPE_REPAIR and asset is not None:
        record = Maintenance.objects.create(
            asset=asset,
            maintenance_type='Corrective',
            description=f"Repair request #{approval.pk}: {reason}",
            cost=_estimated_cost(approval),
            maintenance_date=timezone.localdate(),
            priority=MAINTENANCE_PRIORITY.get(approval.priority, 'Medium'),
            status=Maintenance.STATUS_SCHEDULED,
            created_by=user,
        )
        return {'maintenance_id': record.pk}
    return None


def decide(approval, user, approve, comments='', request=None):
    """
    Approve or reject a pending request.

    Raises BusinessRuleError when the request was already decided (400) or
    when the decider is the requester (403).
    """
    if not approval.is_pending:
        raise BusinessRuleError(f"Request has already been {approval.status.lower()}.")
    if approval.requested_by_id == user.pk:
        raise BusinessRuleError('You cannot decide your own request.', status_code=status.HTTP_403_FORBIDDEN)

    with transaction.atomic():
        approval.status = Approval.STATUS_APPROVED if approve else Approval.STATUS_REJECTED
        approval.approver = user
        approval.approved_at = timezone.now()
        if comments:
            approval.comments = comments
        approval.save()
        effects = _apply_approval_effects(approval, user, request=request) if approve else None

    verb = 'approved' if approve else 'rejected'
    create_audit_log(
        request=request, user=user, action=f'approval_{verb}', entity_type='Approval', entity_id=approval.pk,
        description=f"{approval.request_type} request #{approval.pk} {verb}",
        changes={'status': {'from': Approval.STATUS_PENDING, 'to': approval.status}, 'effects': effects},
    )
    notify_users(
        [approval.requested_by],
        f'Request {verb}',
        f'Your {approval.request_type} request #{approval.pk} was {verb} by {user.name}.'
        + (f' Comments: {comments}' if comments else ''),
        type='approval', priority='medium' if approve else 'high', sender=user,
        data={'approval_id': approval.pk, 'status': approval.status, 'effects': effects},
        action_url=f'/approvals/{approval.pk}',
    )
    logger.info(f"Approval #{approval.pk} {verb} by {user.email}")
    return approval, effects
