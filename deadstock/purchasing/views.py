import logging
from datetime import timedelta
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Avg, Count, DecimalField, Q, Sum
from django.db.models.functions import Coalesce
from django.shortcuts import get_object_or_404
from django.utils import timezone

from deadstock.core.models import User
from deadstock.core.permissions import IsManager, IsAuditStaff, has_role, is_manager
from deadstock.core.utils import create_audit_log, paginated_response, snapshot
from .models import PurchaseOrder, Invoice
from .serializers import (
    PurchaseOrderSerializer, PurchaseOrderListSerializer, PurchaseOrderStatusSerializer,
    ReceiveSerializer, InvoiceSerializer, InvoiceStatusSerializer,
)
from . import services

logger = logging.getLogger('deadstock.purchasing')

ZERO = Decimal('0')


def _money(queryset, field='total_amount'):
    return queryset.aggregate(
        total=Coalesce(Sum(field), ZERO, output_field=DecimalField())
    )['total']


def _visible_orders(user):
    queryset = PurchaseOrder.objects.select_related('vendor', 'requested_by', 'approved_by')
    if has_role(user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR):
        return queryset
    if user.role == User.ROLE_VENDOR and user.vendor_id:
        return queryset.filter(vendor_id=user.vendor_id).exclude(status__in=['draft', 'pending_approval'])
    return queryset.filter(requested_by=user)


def _split_items(request):
    data = request.data.copy()
    items_data = data.pop('items', None)
    return data, items_data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    if request.method == 'GET':
        queryset = _visible_orders(request.user)
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status__in=status_filter.split(','))
        vendor = request.query_params.get('vendor')
        if vendor:
            queryset = queryset.filter(vendor_id=vendor)
        department = request.query_params.get('department')
        if department:
            queryset = queryset.filter(department__iexact=department)
        priority = request.query_params.get('priority')
        if priority:
            queryset = queryset.filter(priority=priority)
        date_from = request.query_params.get('date_from')
        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)
        date_to = request.query_params.get('date_to')
        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(po_number__icontains=search) |
                Q(vendor__company_name__icontains=search) |
                Q(notes__icontains=search) |
                Q(items__description__icontains=search)
            ).distinct()
        return paginated_response(request, queryset.order_by('-created_at'), PurchaseOrderListSerializer)

    if request.user.role == User.ROLE_VENDOR and not request.user.is_superuser:
        return Response({'detail': 'Vendors cannot raise purchase orders.'}, status=status.HTTP_403_FORBIDDEN)

    data, items_data = _split_items(request)
    serializer = PurchaseOrderSerializer(data=data, context={'items_data': items_data, 'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    order = serializer.save(requested_by=request.user)
    create_audit_log(request=request, action='create', entity_type='PurchaseOrder', entity_id=order.pk,
                     description=f"Created purchase order {order.po_number}", new_values=snapshot(order))
    return Response(PurchaseOrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    order = get_object_or_404(_visible_orders(request.user).prefetch_related('items', 'history'), pk=pk)

    if request.method == 'GET':
        return Response(PurchaseOrderSerializer(order).data)

    if not is_manager(request.user) and order.requested_by_id != request.user.pk:
        return Response({'detail': 'Only the requester or a manager can change this order.'},
                        status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        if order.status != 'draft':
            return Response({'error': 'Only draft purchase orders can be deleted; cancel it instead.'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', entity_type='PurchaseOrder', entity_id=order.pk,
                         description=f"Deleted draft purchase order {order.po_number}", old_values=snapshot(order))
        order.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    old_values = snapshot(order)
    data, items_data = _split_items(request)
    serializer = PurchaseOrderSerializer(
        order, data=data, partial=request.method == 'PATCH',
        context={'items_data': items_data, 'request': request}
    )
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    order = serializer.save()
    create_audit_log(request=request, action='update', entity_type='PurchaseOrder', entity_id=order.pk,
                     description=f"Updated purchase order {order.po_number}",
                     old_values=old_values, new_values=snapshot(order))
    return Response(PurchaseOrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_status(request, pk):
    """Move an order along its workflow (submit, approve, reject, send, cancel...)"""
    order = get_object_or_404(_visible_orders(request.user), pk=pk)
    serializer = PurchaseOrderStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    order = services.transition_order(
        order, serializer.validated_data['status'], request.user,
        comments=serializer.validated_data.get('comments', ''), request=request,
    )
    return Response(PurchaseOrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def order_receive(request, pk):
    order = get_object_or_404(PurchaseOrder, pk=pk)
    serializer = ReceiveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    order = services.receive_items(
        order, serializer.validated_data['items'], request.user,
        comments=serializer.validated_data.get('comments', ''), request=request,
    )
    return Response(PurchaseOrderSerializer(order).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def purchase_stats(request):
    orders = PurchaseOrder.objects.all()
    live = orders.exclude(status__in=['cancelled', 'rejected'])
    month_start = timezone.localdate().replace(day=1)
    by_status = orders.values('status').annotate(count=Count('id')).order_by('status')
    by_department = live.values('department').annotate(
        count=Count('id'), total=Coalesce(Sum('total_amount'), ZERO, output_field=DecimalField())
    ).order_by('-total')

    return Response({
        'total_orders': orders.count(),
        'by_status': {row['status']: row['count'] for row in by_status},
        'pending_approval': orders.filter(status='pending_approval').count(),
        'open_orders': orders.exclude(status__in=PurchaseOrder.CLOSED_STATUSES).count(),
        'total_value': _money(live),
        'completed_spend': _money(orders.filter(status='completed')),
        'this_month_value': _money(live.filter(created_at__date__gte=month_start)),
        'average_order_value': live.aggregate(
            avg=Coalesce(Avg('total_amount'), ZERO, output_field=DecimalField())
        )['avg'],
        'by_department': list(by_department),
    })


def _visible_invoices(user):
    queryset = Invoice.objects.select_related('vendor', 'purchase_order', 'created_by', 'approved_by')
    if has_role(user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR):
        return queryset
    if user.role == User.ROLE_VENDOR and user.vendor_id:
        return queryset.filter(vendor_id=user.vendor_id)
    return queryset.none()


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def invoice_list_create(request):
    if request.method == 'GET':
        queryset = _visible_invoices(request.user)
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status__in=status_filter.split(','))
        vendor = request.query_params.get('vendor')
        if vendor:
            queryset = queryset.filter(vendor_id=vendor)
        purchase_order = request.query_params.get('purchase_order')
        if purchase_order:
            queryset = queryset.filter(purchase_order_id=purchase_order)
        date_from = request.query_params.get('date_from')
        if date_from:
            queryset = queryset.filter(invoice_date__gte=date_from)
        date_to = request.query_params.get('date_to')
        if date_to:
            queryset = queryset.filter(invoice_date__lte=date_to)
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(invoice_number__icontains=search) |
                Q(vendor__company_name__icontains=search) |
                Q(purchase_order__po_number__icontains=search) |
                Q(payment_reference__icontains=search)
            )
        return paginated_response(request, queryset.prefetch_related('items'), InvoiceSerializer)

    if not is_manager(request.user):
        return Response({'detail': 'Only administrators and inventory managers can record invoices.'},
                        status=status.HTTP_403_FORBIDDEN)

    data, items_data = _split_items(request)
    serializer = InvoiceSerializer(data=data, context={'items_data': items_data, 'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    invoice = serializer.save(created_by=request.user)
    create_audit_log(request=request, action='create', entity_type='Invoice', entity_id=invoice.pk,
                     description=f"Recorded invoice {invoice.invoice_number} for {invoice.purchase_order.po_number}",
                     new_values=snapshot(invoice))
    return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    invoice = get_object_or_404(_visible_invoices(request.user), pk=pk)
    if request.method == 'GET':
        return Response(InvoiceSerializer(invoice).data)

    if not is_manager(request.user):
        return Response({'detail': 'Only administrators and inventory managers can delete invoices.'},
                        status=status.HTTP_403_FORBIDDEN)
    if invoice.status not in ('draft', 'cancelled'):
        return Response({'error': 'Only draft or cancelled invoices can be deleted.'},
                        status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='delete', entity_type='Invoice', entity_id=invoice.pk,
                     description=f"Deleted invoice {invoice.invoice_number}", old_values=snapshot(invoice))
    invoice.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsManager])
def invoice_status(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk)
    serializer = InvoiceStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    invoice = services.transition_invoice(
        invoice, data['status'], request.user,
        payment_date=data.get('payment_date'),
        payment_reference=data.get('payment_reference'),
        payment_method=data.get('payment_method'),
        request=request,
    )
    return Response(InvoiceSerializer(invoice).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def invoice_stats(request):
    invoices = Invoice.objects.all()
    today = timezone.localdate()
    month_start = today.replace(day=1)
    by_status = invoices.values('status').annotate(count=Count('id')).order_by('status')
    outstanding = invoices.filter(status__in=Invoice.UNPAID_STATUSES)

    return Response({
        'total': invoices.count(),
        'by_status': {row['status']: row['count'] for row in by_status},
        'outstanding': {'count': outstanding.count(), 'amount': _money(outstanding)},
        'overdue': {
            'count': outstanding.filter(due_date__lt=today).count(),
            'amount': _money(outstanding.filter(due_date__lt=today)),
        },
        'due_next_30_days': _money(outstanding.filter(due_date__gte=today,
                                                      due_date__lte=today + timedelta(days=30))),
        'paid_this_month': _money(invoices.filter(status='paid', payment_date__gte=month_start)),
        'total_invoiced': _money(invoices.exclude(status='cancelled')),
    })
