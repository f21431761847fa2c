import logging
from datetime import timedelta
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Count, DecimalField, Q, Sum
from django.db.models.functions import Coalesce, Lower
from django.shortcuts import get_object_or_404
from django.utils import timezone

from deadstock.core.models import AuditLog, SystemSettings, User
from deadstock.core.notifications import notify_managers, notify_users
from deadstock.core.permissions import IsAdminRole, IsManager, IsAuditStaff, is_manager, has_role
from deadstock.core.serializers import AuditLogSerializer
from deadstock.core.settings_schema import mask_section
from deadstock.core.utils import create_audit_log, paginated_response, snapshot
from . import lifecycle
from .filters import AssetFilter, TransferFilter, DisposalFilter
from .label_generator import label_for_asset
from .models import Asset, AssetCategory, AssetTransfer, TransferEvent, DisposalRecord
from .serializers import (
    AssetCategorySerializer, AssetSerializer, AssetListSerializer, AssignAssetSerializer,
    ReportIssueSerializer, AssetTransferSerializer, TransferEventSerializer, TransferStatusSerializer,
    DisposalRecordSerializer,
)

logger = logging.getLogger('deadstock.assets')

ZERO = Decimal('0.00')


def _visible_assets(user):
    """Assets a user may see: employees their own, vendors what they supplied"""
    queryset = Asset.objects.select_related('assigned_user', 'vendor')
    if user.is_superuser or user.role in (User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR):
        return queryset
    if user.role == User.ROLE_VENDOR:
        return queryset.filter(vendor_id=user.vendor_id) if user.vendor_id else queryset.none()
    return queryset.filter(assigned_user=user)


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def category_list_create(request):
    """List asset categories or create one"""
    if request.method == 'GET':
        queryset = AssetCategory.objects.select_related('created_by')
        active = request.query_params.get('active')
        if active is not None:
            queryset = queryset.filter(active=active.lower() in ('1', 'true', 'yes'))
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(description__icontains=search))

        # one grouped query instead of a count per category
        counts = dict(
            Asset.objects.annotate(type_key=Lower('asset_type')).values('type_key')
            .annotate(total=Count('id')).values_list('type_key', 'total')
        )
        categories = list(queryset.order_by('name'))
        for category in categories:
            category.num_assets = counts.get(category.name.lower(), 0)
        return Response(AssetCategorySerializer(categories, many=True).data)
    else:
        if not is_manager(request.user):
            return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
        serializer = AssetCategorySerializer(data=request.data)
        if serializer.is_valid():
            category = serializer.save(created_by=request.user)
            create_audit_log(request=request, action='create', entity_type='AssetCategory', entity_id=category.pk,
                             description=f"Created asset category {category.name}", new_values=snapshot(category))
            return Response(AssetCategorySerializer(category).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def category_detail(request, pk):
    category = get_object_or_404(AssetCategory, pk=pk)

    if request.method == 'GET':
        return Response(AssetCategorySerializer(category).data)

    if request.method in ('PUT', 'PATCH'):
        if not is_manager(request.user):
            return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
        old_values = snapshot(category)
        old_name = category.name
        serializer = AssetCategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            with transaction.atomic():
                category = serializer.save()
                if category.name != old_name:
                    # assets reference their category by name
                    Asset.objects.filter(asset_type__iexact=old_name).update(asset_type=category.name)
            create_audit_log(request=request, action='update', entity_type='AssetCategory', entity_id=category.pk,
                             description=f"Updated asset category {category.name}",
                             old_values=old_values, new_values=snapshot(category))
            return Response(AssetCategorySerializer(category).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if not has_role(request.user, User.ROLE_ADMIN):
            return Response({'detail': 'Admin access required.'}, status=status.HTTP_403_FORBIDDEN)
        in_use = category.asset_count()
        if in_use:
            return Response(
                {'error': f'Cannot delete category "{category.name}": {in_use} asset(s) still use it.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request=request, action='delete', entity_type='AssetCategory', entity_id=category.pk,
                         description=f"Deleted asset category {category.name}", severity='warning',
                         old_values=snapshot(category))
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Asset views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def asset_list_create(request):
    """List assets with filtering or register a new asset"""
    if request.method == 'GET':
        queryset = AssetFilter(request.query_params, queryset=_visible_assets(request.user)).qs
        if 'ordering' not in request.query_params:
            queryset = queryset.order_by('-created_at')
        return paginated_response(request, queryset, AssetListSerializer, default_limit=25)
    else:
        if not is_manager(request.user):
            return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
        serializer = AssetSerializer(data=request.data)
        if serializer.is_valid():
            asset = serializer.save()
            if asset.assigned_user_id and asset.status == Asset.STATUS_AVAILABLE:
                asset.status = Asset.STATUS_ACTIVE
                asset.save(update_fields=['status', 'updated_at'])
            create_audit_log(request=request, action='create', entity_type='Asset', entity_id=asset.pk,
                             description=f"Registered asset {asset.unique_asset_id} ({asset.name})",
                             new_values=snapshot(asset))
            logger.info(f"Asset {asset.unique_asset_id} created by {request.user.email}")
            return Response(AssetSerializer(asset).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def asset_detail(request, pk):
    """Retrieve, update or delete an asset"""
    if request.method == 'GET':
        asset = get_object_or_404(_visible_assets(request.user), pk=pk)
        return Response(AssetSerializer(asset).data)

    asset = get_object_or_404(Asset, pk=pk)

    if request.method in ('PUT', 'PATCH'):
        if not is_manager(request.user):
            return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
        if asset.status == Asset.STATUS_DISPOSED and set(request.data.keys()) - {'notes'}:
            return Response({'error': 'Disposed assets cannot be edited except for notes.'},
                            status=status.HTTP_400_BAD_REQUEST)

        old_values = snapshot(asset)
        partial = request.method == 'PATCH' or asset.status == Asset.STATUS_DISPOSED
        serializer = AssetSerializer(asset, data=request.data, partial=partial)
        if serializer.is_valid():
            asset = serializer.save()
            create_audit_log(request=request, action='update', entity_type='Asset', entity_id=asset.pk,
                             description=f"Updated asset {asset.unique_asset_id}",
                             old_values=old_values, new_values=snapshot(asset))
            return Response(AssetSerializer(asset).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if not has_role(request.user, User.ROLE_ADMIN):
            return Response({'detail': 'Admin access required.'}, status=status.HTTP_403_FORBIDDEN)
        create_audit_log(request=request, action='delete', entity_type='Asset', entity_id=asset.pk,
                         description=f"Deleted asset {asset.unique_asset_id} ({asset.name})", severity='warning',
                         old_values=snapshot(asset))
        asset.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_assets(request):
    queryset = Asset.objects.select_related('assigned_user', 'vendor').filter(assigned_user=request.user)
    queryset = AssetFilter(request.query_params, queryset=queryset).qs.order_by('unique_asset_id')
    return paginated_response(request, queryset, AssetListSerializer, default_limit=50)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def asset_stats(request):
    """Breakdowns by status, condition, type and location plus value totals"""
    queryset = Asset.objects.all()
    live = queryset.exclude(status=Asset.STATUS_DISPOSED)
    today = timezone.localdate()

    def grouped(field):
        rows = queryset.values(field).annotate(count=Count('id')).order_by('-count', field)
        return {row[field] or 'Unspecified': row['count'] for row in rows}

    total_value = live.aggregate(
        total=Coalesce(Sum('purchase_cost'), ZERO, output_field=DecimalField())
    )['total']

    return Response({
        'total': queryset.count(),
        'in_service': live.count(),
        'assigned': live.filter(assigned_user__isnull=False).count(),
        'unassigned': live.filter(assigned_user__isnull=True).count(),
        'by_status': grouped('status'),
        'by_condition': grouped('condition'),
        'by_type': grouped('asset_type'),
        'by_location': grouped('location'),
        'total_value': total_value,
        'dead_stock': queryset.filter(status=Asset.STATUS_READY_FOR_SCRAP).count(),
        'warranty_expiring_30_days': live.filter(
            warranty_expiry__gte=today, warranty_expiry__lte=today + timedelta(days=30)
        ).count(),
        'warranty_expired': live.filter(warranty_expiry__lt=today).count(),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def asset_label(request, pk):
    """Printable barcode label as a PNG data URL"""
    asset = get_object_or_404(_visible_assets(request.user), pk=pk)
    return Response({
        'asset_id': asset.pk,
        'unique_asset_id': asset.unique_asset_id,
        'image': label_for_asset(asset),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def asset_history(request, pk):
    """Audit entries, transfers and maintenance for one asset, newest first"""
    asset = get_object_or_404(_visible_assets(request.user), pk=pk)
    from deadstock.maintenance.serializers import MaintenanceSerializer

    logs = AuditLog.objects.select_related('user').filter(entity_type='Asset', entity_id=str(asset.pk))[:100]
    transfers = asset.transfers.select_related(
        'from_user', 'to_user', 'initiated_by', 'approved_by'
    ).prefetch_related('history')
    maintenance = asset.maintenance_records.select_related('vendor', 'created_by').order_by('-maintenance_date')

    return Response({
        'asset': AssetListSerializer(asset).data,
        'audit_logs': AuditLogSerializer(logs, many=True).data,
        'transfers': AssetTransferSerializer(transfers, many=True).data,
        'maintenance': MaintenanceSerializer(maintenance, many=True).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def asset_assign(request, pk):
    asset = get_object_or_404(Asset, pk=pk)
    if asset.status in (Asset.STATUS_DISPOSED, Asset.STATUS_READY_FOR_SCRAP, Asset.STATUS_DAMAGED):
        return Response({'error': f'Cannot assign an asset with status "{asset.status}".'},
                        status=status.HTTP_400_BAD_REQUEST)

    serializer = AssignAssetSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user = serializer.validated_data['user']
    old_values = snapshot(asset, fields=['assigned_user', 'location', 'status'])
    asset.assigned_user = user
    if serializer.validated_data.get('location'):
        asset.location = serializer.validated_data['location']
    if asset.status == Asset.STATUS_AVAILABLE:
        asset.status = Asset.STATUS_ACTIVE
    if serializer.validated_data.get('notes'):
        asset.append_note(f"Assigned to {user.name}: {serializer.validated_data['notes']}")
    asset.save()

    create_audit_log(request=request, action='assign', entity_type='Asset', entity_id=asset.pk,
                     description=f"Assigned {asset.unique_asset_id} to {user.email}",
                     old_values=old_values,
                     new_values=snapshot(asset, fields=['assigned_user', 'location', 'status']))
    notify_users(
        [user], 'Asset assigned to you',
        f'{asset.name} ({asset.unique_asset_id}) has been assigned to you.',
        type='asset_assigned', sender=request.user,
        data={'asset_id': asset.pk, 'unique_asset_id': asset.unique_asset_id},
        action_url=f'/assets/{asset.pk}',
    )
    return Response(AssetSerializer(asset).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def asset_return(request, pk):
    asset = get_object_or_404(Asset, pk=pk)
    if asset.assigned_user_id is None:
        return Response({'error': 'Asset is not assigned to anyone.'}, status=status.HTTP_400_BAD_REQUEST)
    if asset.assigned_user_id != request.user.pk and not is_manager(request.user):
        return Response({'detail': 'Only the assignee or a manager can return this asset.'},
                        status=status.HTTP_403_FORBIDDEN)

    previous_user = asset.assigned_user
    old_values = snapshot(asset, fields=['assigned_user', 'status', 'condition'])
    asset.assigned_user = None
    if asset.status == Asset.STATUS_ACTIVE:
        asset.status = Asset.STATUS_AVAILABLE
    condition = request.data.get('condition')
    if condition:
        if condition not in dict(Asset.CONDITION_CHOICES):
            return Response({'condition': [f'"{condition}" is not a valid choice.']},
                            status=status.HTTP_400_BAD_REQUEST)
        asset.condition = condition
    notes = request.data.get('notes')
    if notes:
        asset.append_note(f"Returned by {previous_user.name}: {notes}")
    asset.save()

    create_audit_log(request=request, action='return', entity_type='Asset', entity_id=asset.pk,
                     description=f"{asset.unique_asset_id} returned by {previous_user.email}",
                     old_values=old_values,
                     new_values=snapshot(asset, fields=['assigned_user', 'status', 'condition']))
    notify_managers(
        'Asset returned',
        f'{asset.name} ({asset.unique_asset_id}) was returned by {previous_user.name}.',
        type='asset_returned', sender=request.user, exclude=request.user,
        data={'asset_id': asset.pk, 'returned_by': previous_user.pk},
        action_url=f'/assets/{asset.pk}',
    )
    return Response(AssetSerializer(asset).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def asset_report_issue(request, pk):
    """Assignee reports a problem; creates a Repair approval request"""
    from deadstock.approvals.models import Approval
    from deadstock.approvals.serializers import ApprovalSerializer

    asset = get_object_or_404(Asset, pk=pk)
    if asset.assigned_user_id != request.user.pk and not is_manager(request.user):
        return Response({'detail': 'You can only report issues for assets assigned to you.'},
                        status=status.HTTP_403_FORBIDDEN)
    if asset.status == Asset.STATUS_DISPOSED:
        return Response({'error': 'Cannot report an issue for a disposed asset.'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = ReportIssueSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    request_data = {'reason': data['description'], 'reported_issue': True}
    if data.get('estimated_cost') is not None:
        request_data['estimated_cost'] = str(data['estimated_cost'])
    approval = Approval.objects.create(
        request_type=Approval.TYPE_REPAIR,
        asset=asset,
        requested_by=request.user,
        priority=data['priority'],
        request_data=request_data,
    )
    create_audit_log(request=request, action='report_issue', entity_type='Asset', entity_id=asset.pk,
                     description=f"Issue reported on {asset.unique_asset_id}: {data['description'][:200]}")
    notify_managers(
        'Asset issue reported',
        f'{request.user.name} reported an issue with {asset.name} ({asset.unique_asset_id}).',
        type='approval', priority='high' if data['priority'] in ('High', 'Urgent') else 'medium',
        sender=request.user, exclude=request.user,
        data={'approval_id': approval.pk, 'asset_id': asset.pk},
        action_url=f'/approvals/{approval.pk}',
    )
    return Response(ApprovalSerializer(approval).data, status=status.HTTP_201_CREATED)


# Transfer views
def _transfer_parties(transfer):
    return [transfer.initiated_by, transfer.from_user, transfer.to_user]


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def transfer_list_create(request):
    if request.method == 'GET':
        queryset = AssetTransfer.objects.select_related(
            'asset', 'from_user', 'to_user', 'initiated_by', 'approved_by'
        ).prefetch_related('history')
        if not has_role(request.user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR):
            queryset = queryset.filter(
                Q(initiated_by=request.user) | Q(from_user=request.user) | Q(to_user=request.user)
            )
        queryset = TransferFilter(request.query_params, queryset=queryset).qs
        return paginated_response(request, queryset.order_by('-created_at'), AssetTransferSerializer)

    serializer = AssetTransferSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    asset = serializer.validated_data['asset']
    if not is_manager(request.user) and asset.assigned_user_id != request.user.pk:
        return Response({'detail': 'You can only request transfers for assets assigned to you.'},
                        status=status.HTTP_403_FORBIDDEN)

    with transaction.atomic():
        transfer = serializer.save(initiated_by=request.user)
        TransferEvent.objects.create(transfer=transfer, action='created', performed_by=request.user,
                                     comments=transfer.description[:500])
    create_audit_log(request=request, action='create', entity_type='AssetTransfer', entity_id=transfer.transfer_id,
                     description=f"Transfer {transfer.transfer_id} requested for {asset.unique_asset_id}",
                     new_values=snapshot(transfer))
    notify_managers(
        'Asset transfer requested',
        f'Transfer {transfer.transfer_id} for {asset.name} ({asset.unique_asset_id}) awaits approval.',
        type='approval', sender=request.user, exclude=request.user,
        data={'transfer_id': transfer.pk}, action_url=f'/transfers/{transfer.pk}',
    )
    return Response(AssetTransferSerializer(transfer).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transfer_detail(request, pk):
    transfer = get_object_or_404(
        AssetTransfer.objects.select_related('asset', 'from_user', 'to_user', 'initiated_by', 'approved_by'),
        pk=pk
    )
    involved = request.user in _transfer_parties(transfer)
    if not involved and not has_role(request.user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR):
        return Response({'detail': 'You do not have permission to view this transfer.'},
                        status=status.HTTP_403_FORBIDDEN)
    return Response(AssetTransferSerializer(transfer).data)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def transfer_status(request, pk):
    """
    Move a transfer along its workflow.

    pending -> approved | rejected | cancelled
    approved -> in_transit | completed | cancelled
    in_transit -> completed | cancelled

    Approving and rejecting needs a manager; the initiator may also cancel,
    dispatch or complete. Completing hands the asset to the destination.
    """
    transfer = get_object_or_404(AssetTransfer.objects.select_related('asset'), pk=pk)
    serializer = TransferStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    new_status = data['status']

    manager = is_manager(request.user)
    if new_status in ('approved', 'rejected') and not manager:
        return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
    if not manager and transfer.initiated_by_id != request.user.pk:
        return Response({'detail': 'You do not have permission to update this transfer.'},
                        status=status.HTTP_403_FORBIDDEN)
    if not transfer.can_transition_to(new_status):
        return Response({'error': f'Cannot change transfer status from {transfer.status} to {new_status}.'},
                        status=status.HTTP_400_BAD_REQUEST)

    now = timezone.now()
    old_status = transfer.status
    asset = transfer.asset
    with transaction.atomic():
        transfer.status = new_status
        if new_status == 'approved':
            transfer.approved_by = request.user
            transfer.approved_at = now
        elif new_status == 'rejected':
            transfer.approved_by = request.user
            transfer.rejection_reason = data['rejection_reason']
        elif new_status == 'in_transit':
            transfer.actual_transfer_date = now
        elif new_status == 'completed':
            transfer.actual_transfer_date = transfer.actual_transfer_date or now
            transfer.completion_date = now
            asset.assigned_user = transfer.to_user
            asset.location = transfer.to_location
            if asset.status in (Asset.STATUS_ACTIVE, Asset.STATUS_AVAILABLE):
                asset.status = Asset.STATUS_ACTIVE if transfer.to_user_id else Asset.STATUS_AVAILABLE
            asset.save()
        if data.get('handover_notes'):
            transfer.handover_notes = data['handover_notes']
        transfer.save()
        TransferEvent.objects.create(
            transfer=transfer, action=new_status, performed_by=request.user,
            comments=data.get('comments') or data.get('rejection_reason') or '',
        )

    create_audit_log(request=request, action=f'transfer_{new_status}', entity_type='AssetTransfer',
                     entity_id=transfer.transfer_id,
                     description=f"Transfer {transfer.transfer_id} {old_status} -> {new_status}",
                     changes={'status': {'from': old_status, 'to': new_status}})
    notify_users(
        [u for u in _transfer_parties(transfer) if u is not None and u.pk != request.user.pk],
        f'Transfer {transfer.get_status_display().lower()}',
        f'Transfer {transfer.transfer_id} for {asset.name} ({asset.unique_asset_id}) is now '
        f'{transfer.get_status_display().lower()}.',
        type='approval' if new_status in ('approved', 'rejected') else 'info',
        sender=request.user,
        data={'transfer_id': transfer.pk, 'status': new_status},
        action_url=f'/transfers/{transfer.pk}',
    )
    return Response(AssetTransferSerializer(transfer).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def transfer_stats(request):
    queryset = AssetTransfer.objects.all()
    month_start = timezone.localdate().replace(day=1)
    by_status = queryset.values('status').annotate(count=Count('id')).order_by('status')
    by_reason = queryset.values('transfer_reason').annotate(count=Count('id')).order_by('-count')
    return Response({
        'total': queryset.count(),
        'by_status': {row['status']: row['count'] for row in by_status},
        'by_reason': {row['transfer_reason']: row['count'] for row in by_reason},
        'open': queryset.filter(status__in=AssetTransfer.OPEN_STATUSES).count(),
        'completed_this_month': queryset.filter(status='completed', completion_date__date__gte=month_start).count(),
        'overdue': queryset.filter(
            status__in=('approved', 'in_transit'), expected_transfer_date__lt=timezone.localdate()
        ).count(),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transfer_history(request, pk):
    transfer = get_object_or_404(AssetTransfer, pk=pk)
    if request.user not in _transfer_parties(transfer) and not has_role(
            request.user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR):
        return Response({'detail': 'You do not have permission to view this transfer.'},
                        status=status.HTTP_403_FORBIDDEN)
    return Response(TransferEventSerializer(transfer.history.select_related('performed_by'), many=True).data)


# Disposal views
def _complete_disposal(record, request):
    if record.asset is not None and record.asset.status != Asset.STATUS_DISPOSED:
        lifecycle.dispose_asset(record.asset, record)
        create_audit_log(request=request, action='dispose', entity_type='Asset', entity_id=record.asset.pk,
                         description=f"Asset {record.asset_code} disposed ({record.document_reference})",
                         severity='warning')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def disposal_list_create(request):
    if request.method == 'GET':
        queryset = DisposalFilter(request.query_params, queryset=DisposalRecord.objects.select_related('created_by')).qs
        return paginated_response(request, queryset, DisposalRecordSerializer, default_limit=25)

    if not is_manager(request.user):
        return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
    serializer = DisposalRecordSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        extra = {'created_by': request.user}
        if 'approved_by' not in request.data:
            extra['approved_by'] = request.user.name
        record = serializer.save(**extra)
        if record.status == 'completed':
            _complete_disposal(record, request)
    create_audit_log(request=request, action='create', entity_type='DisposalRecord', entity_id=record.pk,
                     description=f"Disposal {record.document_reference} recorded for {record.asset_code}",
                     new_values=snapshot(record))
    return Response(DisposalRecordSerializer(record).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def disposal_detail(request, pk):
    record = get_object_or_404(DisposalRecord.objects.select_related('asset', 'created_by'), pk=pk)
    if request.method == 'GET':
        return Response(DisposalRecordSerializer(record).data)

    if not is_manager(request.user):
        return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
    old_values = snapshot(record)
    serializer = DisposalRecordSerializer(record, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        record = serializer.save()
        if record.status == 'completed':
            _complete_disposal(record, request)
    create_audit_log(request=request, action='update', entity_type='DisposalRecord', entity_id=record.pk,
                     description=f"Updated disposal {record.document_reference}",
                     old_values=old_values, new_values=snapshot(record))
    return Response(DisposalRecordSerializer(record).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def disposal_stats(request):
    queryset = DisposalRecord.objects.all()
    year_start = timezone.localdate().replace(month=1, day=1)
    by_status = queryset.values('status').annotate(count=Count('id')).order_by('status')
    by_method = queryset.values('disposal_method').annotate(
        count=Count('id'),
        value=Coalesce(Sum('disposal_value'), ZERO, output_field=DecimalField()),
    ).order_by('-count')
    return Response({
        'total': queryset.count(),
        'by_status': {row['status']: row['count'] for row in by_status},
        'by_method': {row['disposal_method']: {'count': row['count'], 'value': row['value']} for row in by_method},
        'total_value': queryset.exclude(status='cancelled').aggregate(
            total=Coalesce(Sum('disposal_value'), ZERO, output_field=DecimalField())
        )['total'],
        'this_year': queryset.filter(disposal_date__gte=year_start).count(),
    })


# Lifecycle automation views
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def lifecycle_stats(request):
    return Response(lifecycle.lifecycle_stats())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def lifecycle_run(request):
    summary = lifecycle.run_full_lifecycle()
    create_audit_log(request=request, action='lifecycle_run', entity_type='Lifecycle', entity_id='manual',
                     description=f"Manual lifecycle run: {summary['dead_stock']['count']} to dead stock, "
                                 f"{summary['disposal']['count']} to disposal")
    return Response(summary)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def lifecycle_dead_stock(request):
    return Response(lifecycle.move_outdated_to_dead_stock())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def lifecycle_disposal(request):
    return Response(lifecycle.move_dead_stock_to_disposal())


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated, IsManager])
def lifecycle_config(request):
    if request.method == 'GET':
        return Response(mask_section('lifecycle', SystemSettings.load().get_section('lifecycle')))
    if not has_role(request.user, User.ROLE_ADMIN):
        return Response({'detail': 'Admin access required.'}, status=status.HTTP_403_FORBIDDEN)
    from deadstock.core.views import update_settings_section
    return update_settings_section(request, 'lifecycle')
