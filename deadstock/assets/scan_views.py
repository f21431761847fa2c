import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from deadstock.core.models import User
from deadstock.core.permissions import IsAuditStaff, has_role
from deadstock.core.serializers import AuditLogSerializer
from deadstock.core.utils import paginated_response
from . import scan as scanning
from .models import Asset
from .serializers import AssetSerializer, BatchScanSerializer, QuickAuditSerializer
from .views import _visible_assets

logger = logging.getLogger('deadstock.assets')


def _scan_payload(asset, include_history=False):
    payload = {
        'asset': AssetSerializer(asset).data,
        'actions': {
            'can_audit': asset.status != Asset.STATUS_DISPOSED,
            'can_assign': asset.status in (Asset.STATUS_AVAILABLE, Asset.STATUS_ACTIVE),
            'can_report_issue': asset.status != Asset.STATUS_DISPOSED,
        },
    }
    if include_history:
        from deadstock.maintenance.serializers import MaintenanceSerializer
        recent = asset.maintenance_records.select_related('vendor', 'created_by').order_by('-maintenance_date')[:5]
        payload['recent_maintenance'] = MaintenanceSerializer(recent, many=True).data
    return payload


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def scan_code(request, code):
    """
    Look up a scanned barcode or QR code.

    Matches the unique asset ID first, then the serial number. ``?mode=``
    is lookup (default), audit or checkout and only changes what the scan
    is logged as.
    """
    mode = request.query_params.get('mode', 'lookup')
    if mode not in scanning.SCAN_MODES:
        return Response({'error': f'mode must be one of: {", ".join(scanning.SCAN_MODES)}'},
                        status=status.HTTP_400_BAD_REQUEST)

    asset = scanning.scan(request, code, mode=mode, queryset=_visible_assets(request.user))
    if asset is None:
        return Response({'error': f'No asset found for code "{code}".', 'code': code},
                        status=status.HTTP_404_NOT_FOUND)
    include_history = request.query_params.get('include_history', '').lower() in ('1', 'true', 'yes')
    return Response(_scan_payload(asset, include_history=include_history))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def scan_batch(request):
    """Resolve up to 100 codes at once; unknown codes are listed, not fatal"""
    serializer = BatchScanSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    mode = serializer.validated_data['mode']
    visible = _visible_assets(request.user)

    found, not_found = [], []
    for code in serializer.validated_data['codes']:
        asset = scanning.scan(request, code, mode=mode, queryset=visible)
        if asset is None:
            not_found.append(code)
        else:
            found.append({'code': code, 'asset': AssetSerializer(asset).data})
    logger.info(f"Batch scan by {request.user.email}: {len(found)} found, {len(not_found)} unknown")
    return Response({
        'mode': mode,
        'total': len(found) + len(not_found),
        'found_count': len(found),
        'not_found_count': len(not_found),
        'found': found,
        'not_found': not_found,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def scan_quick_audit(request, code):
    """Scan an asset and record what the auditor found in one step"""
    asset = scanning.find_by_code(code)
    if asset is None:
        scanning.record_scan(request, code, None, mode='audit')
        return Response({'error': f'No asset found for code "{code}".', 'code': code},
                        status=status.HTTP_404_NOT_FOUND)
    if asset.status == Asset.STATUS_DISPOSED:
        return Response({'error': 'Disposed assets cannot be audited.'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = QuickAuditSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    scanning.record_scan(request, code, asset, mode='audit')
    asset = scanning.quick_audit(request, asset, condition=data.get('condition'), new_status=data.get('status'),
                                 location=data.get('location'), notes=data['notes'])
    return Response(AssetSerializer(asset).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def scan_history(request):
    """
    Scan log, newest first. Everyone sees their own scans; audit staff may
    pass ``?all=true`` for every user's.
    """
    everyone = request.query_params.get('all', '').lower() in ('1', 'true', 'yes')
    if everyone and not has_role(request.user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR):
        everyone = False
    queryset = scanning.scan_history(user=None if everyone else request.user,
                                     mode=request.query_params.get('mode'))
    asset_id = request.query_params.get('asset')
    if asset_id:
        queryset = queryset.filter(entity_id=str(asset_id))
    return paginated_response(request, queryset, AuditLogSerializer, default_limit=50)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def scan_stats(request):
    period = request.query_params.get('period', '7d')
    if period not in scanning.STATS_PERIODS:
        return Response({'error': f'period must be one of: {", ".join(scanning.STATS_PERIODS)}'},
                        status=status.HTTP_400_BAD_REQUEST)
    everyone = has_role(request.user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR)
    return Response(scanning.scan_stats(period, user=None if everyone else request.user))
