import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404

from deadstock.core.models import User
from deadstock.core.notifications import notify_managers
from deadstock.core.permissions import IsManager, has_role
from deadstock.core.utils import create_audit_log, paginated_response, snapshot
from .models import Approval
from .serializers import ApprovalSerializer, ApprovalDecisionSerializer
from .services import decide

logger = logging.getLogger('deadstock.approvals')


def _can_see_all(user):
    return has_role(user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER)


def _visible_approvals(user):
    queryset = Approval.objects.select_related('requested_by', 'approver', 'asset')
    if _can_see_all(user):
        return queryset
    return queryset.filter(Q(requested_by=user) | Q(approver=user))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def approval_list_create(request):
    """List approval requests (managers: all, others: own) or submit one"""
    if request.method == 'GET':
        queryset = _visible_approvals(request.user)
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        request_type = request.query_params.get('request_type') or request.query_params.get('type')
        if request_type:
            queryset = queryset.filter(request_type=request_type)
        asset = request.query_params.get('asset')
        if asset:
            queryset = queryset.filter(asset_id=asset)
        date_from = request.query_params.get('date_from')
        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)
        date_to = request.query_params.get('date_to')
        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)
        return paginated_response(request, queryset.order_by('-created_at'), ApprovalSerializer)

    serializer = ApprovalSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    approval = serializer.save(requested_by=request.user)
    create_audit_log(request=request, action='create', entity_type='Approval', entity_id=approval.pk,
                     description=f"{approval.request_type} request submitted", new_values=snapshot(approval))
    notify_managers(
        f'New {approval.request_type} request',
        f'{request.user.name} submitted a {approval.request_type} request'
        + (f' for {approval.asset.unique_asset_id}.' if approval.asset else '.'),
        type='approval', priority='high' if approval.priority in ('High', 'Urgent') else 'medium',
        sender=request.user, exclude=request.user,
        data={'approval_id': approval.pk}, action_url=f'/approvals/{approval.pk}',
    )
    return Response(ApprovalSerializer(approval).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def approval_detail(request, pk):
    approval = get_object_or_404(_visible_approvals(request.user), pk=pk)
    if request.method == 'GET':
        return Response(ApprovalSerializer(approval).data)

    # withdrawing: only the requester, only while pending
    if approval.requested_by_id != request.user.pk and not has_role(request.user, User.ROLE_ADMIN):
        return Response({'detail': 'Only the requester can withdraw this request.'}, status=status.HTTP_403_FORBIDDEN)
    if not approval.is_pending:
        return Response({'error': 'Only pending requests can be withdrawn.'}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='delete', entity_type='Approval', entity_id=approval.pk,
                     description=f"{approval.request_type} request #{approval.pk} withdrawn",
                     old_values=snapshot(approval))
    approval.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


def _decision(request, pk, approve):
    approval = get_object_or_404(Approval.objects.select_related('requested_by', 'asset'), pk=pk)
    serializer = ApprovalDecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    approval, effects = decide(approval, request.user, approve,
                               comments=serializer.validated_data.get('comments', ''), request=request)
    data = ApprovalSerializer(approval).data
    if effects:
        data['effects'] = effects
    return Response(data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def approval_approve(request, pk):
    return _decision(request, pk, approve=True)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def approval_reject(request, pk):
    return _decision(request, pk, approve=False)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def approval_stats(request):
    queryset = _visible_approvals(request.user)
    by_status = queryset.values('status').annotate(count=Count('id')).order_by('status')
    by_type = queryset.values('request_type').annotate(count=Count('id')).order_by('-count')
    return Response({
        'total': queryset.count(),
        'pending': queryset.filter(status=Approval.STATUS_PENDING).count(),
        'by_status': {row['status']: row['count'] for row in by_status},
        'by_type': {row['request_type']: row['count'] for row in by_type},
    })
