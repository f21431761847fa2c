import logging
from datetime import timedelta
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Count, DecimalField, Sum
from django.db.models.functions import Coalesce
from django.shortcuts import get_object_or_404
from django.utils import timezone

from deadstock.assets.models import Asset
from deadstock.assets.serializers import AssetListSerializer
from deadstock.core.models import User
from deadstock.core.notifications import notify_users
from deadstock.core.permissions import IsAuditStaff, is_manager, has_role
from deadstock.core.utils import create_audit_log, paginated_response, snapshot
from .filters import MaintenanceFilter
from .models import Maintenance
from .serializers import MaintenanceSerializer
from .services import apply_status_side_effects

logger = logging.getLogger('deadstock.maintenance')

ZERO = Decimal('0.00')


def _visible_records(user):
    queryset = Maintenance.objects.select_related('asset', 'vendor', 'created_by')
    if has_role(user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR):
        return queryset
    if user.role == User.ROLE_VENDOR:
        return queryset.filter(vendor_id=user.vendor_id) if user.vendor_id else queryset.none()
    return queryset.filter(asset__assigned_user=user)


def _notify_assignee(record, request, title):
    assignee = record.asset.assigned_user
    if assignee is None or assignee.pk == request.user.pk:
        return
    notify_users(
        [assignee], title,
        f'{record.maintenance_type} maintenance for {record.asset.name} ({record.asset.unique_asset_id}) '
        f'on {record.maintenance_date}: {record.status}.',
        type='maintenance', sender=request.user,
        data={'maintenance_id': record.pk, 'asset_id': record.asset_id},
        action_url=f'/maintenance/{record.pk}',
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def maintenance_list_create(request):
    """List maintenance records or schedule new work"""
    if request.method == 'GET':
        queryset = MaintenanceFilter(request.query_params, queryset=_visible_records(request.user)).qs
        return paginated_response(request, queryset, MaintenanceSerializer, default_limit=25)

    if not is_manager(request.user):
        return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
    serializer = MaintenanceSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        record = serializer.save(created_by=request.user)
        apply_status_side_effects(record)
    create_audit_log(request=request, action='create', entity_type='Maintenance', entity_id=record.pk,
                     description=f"{record.maintenance_type} maintenance scheduled for {record.asset.unique_asset_id}",
                     new_values=snapshot(record))
    _notify_assignee(record, request, 'Maintenance scheduled')
    return Response(MaintenanceSerializer(record).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def maintenance_detail(request, pk):
    if request.method == 'GET':
        record = get_object_or_404(_visible_records(request.user), pk=pk)
        return Response(MaintenanceSerializer(record).data)

    if not is_manager(request.user):
        return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
    record = get_object_or_404(Maintenance.objects.select_related('asset'), pk=pk)

    if request.method == 'DELETE':
        if record.status == Maintenance.STATUS_IN_PROGRESS:
            return Response({'error': 'Maintenance in progress cannot be deleted; cancel it first.'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', entity_type='Maintenance', entity_id=record.pk,
                         description=f"Deleted maintenance record for {record.asset.unique_asset_id}",
                         severity='warning', old_values=snapshot(record))
        record.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    old_values = snapshot(record)
    old_status = record.status
    serializer = MaintenanceSerializer(record, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        record = serializer.save()
        apply_status_side_effects(record, old_status)
    create_audit_log(request=request, action='update', entity_type='Maintenance', entity_id=record.pk,
                     description=f"Updated maintenance for {record.asset.unique_asset_id} ({record.status})",
                     old_values=old_values, new_values=snapshot(record))
    if record.status != old_status and record.status == Maintenance.STATUS_COMPLETED:
        _notify_assignee(record, request, 'Maintenance completed')
    return Response(MaintenanceSerializer(record).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def maintenance_upcoming(request):
    """Scheduled or overdue work within the next ``days`` days (default 30)"""
    try:
        days = max(int(request.query_params.get('days', 30)), 0)
    except ValueError:
        return Response({'error': 'days must be an integer.'}, status=status.HTTP_400_BAD_REQUEST)
    today = timezone.localdate()
    queryset = _visible_records(request.user).filter(
        status__in=[Maintenance.STATUS_SCHEDULED, Maintenance.STATUS_OVERDUE],
        maintenance_date__lte=today + timedelta(days=days),
    ).order_by('maintenance_date')
    return Response({
        'days': days,
        'count': queryset.count(),
        'results': MaintenanceSerializer(queryset[:200], many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def maintenance_warranties(request):
    """Assets whose warranty expires within ``days`` days (default 90)"""
    try:
        days = max(int(request.query_params.get('days', 90)), 0)
    except ValueError:
        return Response({'error': 'days must be an integer.'}, status=status.HTTP_400_BAD_REQUEST)
    today = timezone.localdate()
    assets = Asset.objects.select_related('assigned_user', 'vendor').exclude(
        status=Asset.STATUS_DISPOSED
    ).filter(
        warranty_expiry__gte=today, warranty_expiry__lte=today + timedelta(days=days)
    ).order_by('warranty_expiry')

    results = []
    for asset in assets:
        row = AssetListSerializer(asset).data
        row['days_remaining'] = (asset.warranty_expiry - today).days
        results.append(row)
    return Response({'days': days, 'count': len(results), 'results': results})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def maintenance_stats(request):
    queryset = Maintenance.objects.all()
    today = timezone.localdate()
    month_start = today.replace(day=1)
    year_start = today.replace(month=1, day=1)

    def cost(qs):
        return qs.aggregate(total=Coalesce(Sum('cost'), ZERO, output_field=DecimalField()))['total']

    completed = queryset.filter(status=Maintenance.STATUS_COMPLETED)
    by_status = queryset.values('status').annotate(count=Count('id')).order_by('status')
    by_type = queryset.values('maintenance_type').annotate(count=Count('id')).order_by('-count')
    by_priority = queryset.values('priority').annotate(count=Count('id')).order_by('priority')

    return Response({
        'total': queryset.count(),
        'by_status': {row['status']: row['count'] for row in by_status},
        'by_type': {row['maintenance_type']: row['count'] for row in by_type},
        'by_priority': {row['priority']: row['count'] for row in by_priority},
        'overdue': queryset.filter(status=Maintenance.STATUS_OVERDUE).count(),
        'due_this_week': queryset.filter(
            status=Maintenance.STATUS_SCHEDULED,
            maintenance_date__gte=today, maintenance_date__lte=today + timedelta(days=7)
        ).count(),
        'cost_this_month': cost(completed.filter(maintenance_date__gte=month_start)),
        'cost_this_year': cost(completed.filter(maintenance_date__gte=year_start)),
        'total_cost': cost(completed),
    })
