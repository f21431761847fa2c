import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, F, Q, Sum, DecimalField
from django.db.models.functions import Coalesce
from django.shortcuts import get_object_or_404

from deadstock.core.permissions import is_manager, has_role
from deadstock.core.models import User
from deadstock.core.utils import create_audit_log, paginated_response, snapshot
from .models import Vendor
from .serializers import VendorSerializer

logger = logging.getLogger('deadstock.vendors')

ZERO = Decimal('0.00')


def _can_view_vendors(user):
    return has_role(user, User.ROLE_ADMIN, User.ROLE_INVENTORY_MANAGER, User.ROLE_AUDITOR)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def vendor_list_create(request):
    """List vendors or create a vendor"""
    if request.method == 'GET':
        if not _can_view_vendors(request.user):
            return Response({'detail': 'You do not have permission to view vendors.'}, status=status.HTTP_403_FORBIDDEN)
        queryset = Vendor.objects.all()

        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(company_name__icontains=search) |
                Q(vendor_code__icontains=search) |
                Q(contact_person__icontains=search) |
                Q(email__icontains=search)
            )
        is_active = request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() in ('1', 'true', 'yes'))
        vendor_type = request.query_params.get('vendor_type')
        if vendor_type:
            queryset = queryset.filter(vendor_type=vendor_type)
        category = request.query_params.get('category')
        if category:
            # JSON list membership, evaluated in Python for portability across databases
            ids = [v.pk for v in queryset.only('id', 'categories') if category in (v.categories or [])]
            queryset = queryset.filter(pk__in=ids)

        return paginated_response(request, queryset.order_by('company_name'), VendorSerializer, default_limit=25)
    else:
        if not is_manager(request.user):
            return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
        serializer = VendorSerializer(data=request.data)
        if serializer.is_valid():
            vendor = serializer.save()
            create_audit_log(request=request, action='create', entity_type='Vendor', entity_id=vendor.pk,
                             description=f"Created vendor {vendor.company_name} ({vendor.vendor_code})",
                             new_values=snapshot(vendor))
            return Response(VendorSerializer(vendor).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def vendor_detail(request, pk):
    """Retrieve, update or delete a vendor"""
    vendor = get_object_or_404(Vendor, pk=pk)

    if request.method == 'GET':
        if not _can_view_vendors(request.user) and request.user.vendor_id != vendor.pk:
            return Response({'detail': 'You do not have permission to view vendors.'}, status=status.HTTP_403_FORBIDDEN)
        return Response(VendorSerializer(vendor).data)

    if not is_manager(request.user):
        return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        old_values = snapshot(vendor)
        serializer = VendorSerializer(vendor, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', entity_type='Vendor', entity_id=vendor.pk,
                             description=f"Updated vendor {vendor.company_name}",
                             old_values=old_values, new_values=snapshot(vendor))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if vendor.purchase_orders.exists():
            vendor.is_active = False
            vendor.save(update_fields=['is_active', 'updated_at'])
            create_audit_log(request=request, action='deactivate', entity_type='Vendor', entity_id=vendor.pk,
                             description=f"Deactivated vendor {vendor.company_name} (has purchase orders)",
                             severity='warning')
            return Response({
                'message': 'Vendor has purchase orders and was deactivated instead of deleted.',
                'vendor': VendorSerializer(vendor).data,
            })
        create_audit_log(request=request, action='delete', entity_type='Vendor', entity_id=vendor.pk,
                         description=f"Deleted vendor {vendor.company_name}", severity='warning',
                         old_values=snapshot(vendor))
        vendor.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


def vendor_performance_data(vendor):
    """Order, delivery, invoice and service figures for one vendor"""
    orders = vendor.purchase_orders.all()
    completed = orders.filter(status='completed')
    delivered = completed.filter(actual_delivery_date__isnull=False)
    on_time = delivered.filter(actual_delivery_date__lte=F('expected_delivery_date')).count()
    delivered_count = delivered.count()

    total_spend = completed.aggregate(
        total=Coalesce(Sum('total_amount'), ZERO, output_field=DecimalField())
    )['total']

    open_invoices = vendor.invoices.exclude(status__in=['paid', 'cancelled'])
    maintenance = vendor.maintenance_records.all()

    return {
        'vendor': {'id': vendor.pk, 'company_name': vendor.company_name, 'vendor_code': vendor.vendor_code},
        'rating': vendor.rating,
        'orders': {
            'total': orders.count(),
            'completed': completed.count(),
            'cancelled': orders.filter(status='cancelled').count(),
            'open': orders.exclude(status__in=['completed', 'cancelled', 'rejected']).count(),
        },
        'on_time_delivery_rate': round(on_time * 100 / delivered_count, 1) if delivered_count else None,
        'total_spend': total_spend,
        'open_invoices': {
            'count': open_invoices.count(),
            'amount': open_invoices.aggregate(
                total=Coalesce(Sum('total_amount'), ZERO, output_field=DecimalField())
            )['total'],
        },
        'maintenance_jobs': {
            'total': maintenance.count(),
            'completed': maintenance.filter(status='Completed').count(),
            'total_cost': maintenance.aggregate(
                total=Coalesce(Sum('cost'), ZERO, output_field=DecimalField())
            )['total'],
        },
        'assets_supplied': vendor.assets.count(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def vendor_performance(request, pk):
    vendor = get_object_or_404(Vendor, pk=pk)
    if not _can_view_vendors(request.user) and request.user.vendor_id != vendor.pk:
        return Response({'detail': 'You do not have permission to view vendors.'}, status=status.HTTP_403_FORBIDDEN)
    return Response(vendor_performance_data(vendor))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def vendor_stats(request):
    if not _can_view_vendors(request.user):
        return Response({'detail': 'You do not have permission to view vendors.'}, status=status.HTTP_403_FORBIDDEN)

    top_vendors = Vendor.objects.annotate(
        total_spend=Coalesce(
            Sum('purchase_orders__total_amount', filter=Q(purchase_orders__status='completed')),
            ZERO, output_field=DecimalField()
        ),
        order_count=Count('purchase_orders', distinct=True),
    ).order_by('-total_spend', 'company_name')[:5]

    by_type = Vendor.objects.values('vendor_type').annotate(count=Count('id')).order_by('vendor_type')

    return Response({
        'total': Vendor.objects.count(),
        'active': Vendor.objects.filter(is_active=True).count(),
        'inactive': Vendor.objects.filter(is_active=False).count(),
        'by_type': {row['vendor_type']: row['count'] for row in by_type},
        'top_vendors': [
            {
                'id': v.pk,
                'company_name': v.company_name,
                'total_spend': v.total_spend,
                'order_count': v.order_count,
                'rating': v.rating,
            }
            for v in top_vendors
        ],
    })
