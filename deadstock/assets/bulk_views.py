"""Bulk operations plus CSV/JSON import and export for the asset register"""
import json
import logging

from django.http import HttpResponse
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from deadstock.core.models import AuditLog, User
from deadstock.core.permissions import IsManager, IsAuditStaff, has_role
from deadstock.core.serializers import AuditLogSerializer
from deadstock.core.utils import create_audit_log, paginated_response
from . import bulk, import_export
from .filters import AssetFilter
from .serializers import (
    BulkStatusSerializer, BulkAssignSerializer, BulkLocationSerializer,
    BulkConditionSerializer, BulkMaintenanceSerializer, BulkDeleteSerializer, BulkValidateSerializer,
)
from .views import _visible_assets

logger = logging.getLogger('deadstock.assets')

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _flag(request, name):
    value = request.data.get(name, request.query_params.get(name, ''))
    return value is True or str(value).lower() in TRUE_VALUES


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def bulk_update_status(request):
    serializer = BulkStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    result = bulk.update_status(data['asset_ids'], data['status'], request, notes=data['notes'])
    return Response(result.as_dict())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def bulk_assign(request):
    """Assign many assets to one user; reassigning held assets needs force"""
    serializer = BulkAssignSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    result = bulk.assign(data['asset_ids'], data['user'], request, department=data.get('department'),
                         notes=data['notes'], force=data['force'] or _flag(request, 'force'))
    return Response(result.as_dict())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def bulk_update_location(request):
    serializer = BulkLocationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    result = bulk.update_location(data['asset_ids'], data['location'], request, notes=data['notes'])
    return Response(result.as_dict())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def bulk_update_condition(request):
    serializer = BulkConditionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    result = bulk.update_condition(data['asset_ids'], data['condition'], request, notes=data['notes'])
    return Response(result.as_dict())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def bulk_schedule_maintenance(request):
    serializer = BulkMaintenanceSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    result = bulk.schedule_maintenance(
        data['asset_ids'], request,
        maintenance_type=data['maintenance_type'],
        maintenance_date=data['maintenance_date'],
        description=data['description'] or data['notes'],
        priority=data['priority'],
        performed_by=data['performed_by'],
        vendor=data['vendor'],
        cost=data['cost'],
    )
    return Response(result.as_dict(), status=status.HTTP_201_CREATED if result.updated_ids else status.HTTP_200_OK)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def bulk_delete(request):
    """Retire assets to dead stock; permanent deletion is ADMIN only"""
    serializer = BulkDeleteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    if data['permanent'] and not has_role(request.user, User.ROLE_ADMIN):
        return Response({'detail': 'Admin access required for permanent deletion.'},
                        status=status.HTTP_403_FORBIDDEN)
    result = bulk.delete(data['asset_ids'], request, reason=data['reason'], permanent=data['permanent'],
                         force=data['force'] or _flag(request, 'force'))
    return Response(result.as_dict())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def bulk_validate(request):
    """Dry run of a bulk operation"""
    serializer = BulkValidateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    return Response(bulk.validate(data['asset_ids'], data['operation']))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def bulk_history(request):
    """Audit entries written by bulk operations; managers see their own, admins everyone's"""
    queryset = AuditLog.objects.select_related('user').filter(action__in=bulk.BULK_ACTIONS.values())
    if not has_role(request.user, User.ROLE_ADMIN):
        queryset = queryset.filter(user=request.user)
    operation = request.query_params.get('operation')
    if operation in bulk.BULK_ACTIONS:
        queryset = queryset.filter(action=bulk.BULK_ACTIONS[operation])
    batch_id = request.query_params.get('batch_id')
    if batch_id:
        queryset = queryset.filter(changes__batch_id=batch_id)
    return paginated_response(request, queryset, AuditLogSerializer, default_limit=50)


# Import and export
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def asset_export(request):
    """
    Download the register, filtered like the asset list.

    ``?output=csv`` (default) returns a CSV attachment, ``?output=json`` the
    same rows as JSON.
    """
    output = request.query_params.get('output', 'csv').lower()
    if output not in ('csv', 'json'):
        return Response({'error': 'output must be csv or json.'}, status=status.HTTP_400_BAD_REQUEST)

    queryset = AssetFilter(request.query_params, queryset=_visible_assets(request.user)).qs.order_by('unique_asset_id')
    stamp = timezone.localdate().isoformat()
    count = queryset.count()
    create_audit_log(request=request, action='export', entity_type='Asset', entity_id='',
                     description=f"Exported {count} asset(s) as {output.upper()}",
                     changes={'output': output, 'count': count})
    logger.info(f"{request.user.email} exported {count} assets as {output}")

    if output == 'json':
        response = HttpResponse(json.dumps(import_export.export_rows(queryset), default=str, indent=2),
                                content_type='application/json')
    else:
        response = HttpResponse(import_export.export_csv(queryset), content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="assets-{stamp}.{output}"'
    return response


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def asset_import(request):
    """
    Import assets from an uploaded CSV (``file``) or a JSON body
    (``{"assets": [...]}``). ``dry_run`` validates without saving.
    """
    upload = request.FILES.get('file')
    if upload is not None:
        rows = import_export.read_csv(upload)
        first_row = 2
    else:
        rows = request.data.get('assets') if isinstance(request.data, dict) else None
        if not isinstance(rows, list):
            return Response({'error': 'Upload a CSV file or send an "assets" list.'},
                            status=status.HTTP_400_BAD_REQUEST)
        first_row = 1

    dry_run = _flag(request, 'dry_run')
    summary = import_export.import_rows(rows, request=request, dry_run=dry_run, first_row=first_row)
    if not dry_run and summary['imported']:
        create_audit_log(request=request, action='bulk_import', entity_type='Asset', entity_id='',
                         description=f"Imported {summary['imported']} of {summary['total_rows']} asset row(s)",
                         changes={'imported': summary['imported'], 'failed': summary['failed']})

    if dry_run:
        code = status.HTTP_200_OK
    elif summary['imported']:
        code = status.HTTP_201_CREATED
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response(summary, status=code)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def asset_import_template(request):
    """Empty CSV with the import header row"""
    columns = [c for c in import_export.EXPORT_COLUMNS if c not in import_export.IGNORED_COLUMNS]
    response = HttpResponse(','.join(columns) + '\r\n', content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = 'attachment; filename="asset-import-template.csv"'
    return response
