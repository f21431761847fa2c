import csv
import logging
from datetime import timedelta

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.core.exceptions import ObjectDoesNotExist
from django.db.models import Count, Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone

from .filters import AuditLogFilter, UserFilter
from .models import User, AuditLog, Notification, SystemSettings, SettingsHistory
from .notifications import notify_users
from .permissions import IsAdminRole, IsAdminOrAuditor, is_manager
from .serializers import (
    UserSerializer, UserCreateSerializer, UserSelfUpdateSerializer, ChangePasswordSerializer,
    AuditLogSerializer, NotificationSerializer, NotificationCreateSerializer, SettingsHistorySerializer,
)
from .settings_schema import MASK, SECTION_DEFAULTS, validate_section, mask_section
from .utils import create_audit_log, get_client_ip, paginated_response, snapshot

logger = logging.getLogger('deadstock.core')

ROLE_CAPABILITIES = {
    User.ROLE_ADMIN: {
        'can_manage_assets': True, 'can_approve': True, 'can_audit': True,
        'can_access_reports': True, 'can_manage_users': True, 'dashboard': 'admin',
    },
    User.ROLE_INVENTORY_MANAGER: {
        'can_manage_assets': True, 'can_approve': True, 'can_audit': False,
        'can_access_reports': True, 'can_manage_users': False, 'dashboard': 'inventory',
    },
    User.ROLE_AUDITOR: {
        'can_manage_assets': False, 'can_approve': False, 'can_audit': True,
        'can_access_reports': True, 'can_manage_users': False, 'dashboard': 'auditor',
    },
    User.ROLE_EMPLOYEE: {
        'can_manage_assets': False, 'can_approve': False, 'can_audit': False,
        'can_access_reports': False, 'can_manage_users': False, 'dashboard': 'employee',
    },
    User.ROLE_VENDOR: {
        'can_manage_assets': False, 'can_approve': False, 'can_audit': False,
        'can_access_reports': False, 'can_manage_users': False, 'dashboard': 'vendor',
    },
}


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        create_audit_log(
            request=self.context.get('request'),
            user=self.user,
            action='login',
            entity_type='User',
            entity_id=self.user.pk,
            description=f"{self.user.email} logged in",
        )
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['name'] = user.name
        token['role'] = user.role
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that rejects tokens of deleted users"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Self-registration; accounts start as employees"""
    serializer = UserCreateSerializer(data=request.data, context={'allow_role': False})
    if serializer.is_valid():
        user = serializer.save()
        create_audit_log(request=request, user=user, action='register', entity_type='User',
                         entity_id=user.pk, description=f"{user.email} registered")
        token = CustomTokenObtainPairSerializer.get_token(user)
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with role capabilities"""
    user = request.user
    user_data = UserSerializer(user).data
    capabilities = ROLE_CAPABILITIES.get(user.role, ROLE_CAPABILITIES[User.ROLE_EMPLOYEE])
    if user.is_superuser:
        capabilities = ROLE_CAPABILITIES[User.ROLE_ADMIN]
    user_data.update(capabilities)
    user_data['unread_notifications'] = _active_notifications(user).filter(is_read=False).count()
    return Response(user_data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request):
    serializer = ChangePasswordSerializer(data=request.data, context={'user': request.user})
    if serializer.is_valid():
        request.user.set_password(serializer.validated_data['new_password'])
        request.user.save()
        create_audit_log(request=request, action='password_change', entity_type='User',
                         entity_id=request.user.pk, description='Password changed')
        return Response({'message': 'Password updated successfully'})
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        queryset = UserFilter(request.query_params, queryset=User.objects.select_related('vendor')).qs
        return paginated_response(request, queryset.order_by('name', 'id'), UserSerializer, default_limit=25)
    else:
        serializer = UserCreateSerializer(data=request.data, context={'allow_role': True})
        if serializer.is_valid():
            user = serializer.save()
            create_audit_log(request=request, action='create', entity_type='User', entity_id=user.pk,
                             description=f"Created user {user.email} ({user.role})",
                             new_values=snapshot(user, exclude=['password']))
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail(request, pk):
    """
    Retrieve, update or delete a user.

    Admins manage everyone; other users may read and patch their own
    profile fields only.
    """
    user = get_object_or_404(User, pk=pk)
    is_admin = request.user.is_superuser or request.user.role == User.ROLE_ADMIN
    is_self = user.pk == request.user.pk

    if not is_admin and not (is_self and request.method in ('GET', 'PATCH')):
        return Response({'detail': 'Admin access required.'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer_class = UserSerializer if is_admin else UserSelfUpdateSerializer
        old_values = snapshot(user, exclude=['password'])
        serializer = serializer_class(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', entity_type='User', entity_id=user.pk,
                             description=f"Updated user {user.email}", old_values=old_values,
                             new_values=snapshot(user, exclude=['password']))
            return Response(UserSerializer(user).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if is_self:
            return Response({'error': 'You cannot delete your own account.'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', entity_type='User', entity_id=user.pk,
                         description=f"Deleted user {user.email}", severity='warning',
                         old_values=snapshot(user, exclude=['password']))
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrAuditor])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLogFilter(request.query_params, queryset=AuditLog.objects.select_related('user')).qs
    return paginated_response(request, queryset.order_by('-timestamp'), AuditLogSerializer, default_limit=50)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrAuditor])
def audit_log_detail(request, pk):
    audit_log = get_object_or_404(AuditLog.objects.select_related('user'), pk=pk)
    return Response(AuditLogSerializer(audit_log).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrAuditor])
def audit_log_stats(request):
    queryset = AuditLogFilter(request.query_params, queryset=AuditLog.objects.all()).qs
    since = timezone.now() - timedelta(hours=24)
    by_action = queryset.values('action').annotate(count=Count('id')).order_by('-count')
    by_severity = queryset.values('severity').annotate(count=Count('id')).order_by('severity')
    by_entity = queryset.exclude(entity_type='').values('entity_type').annotate(count=Count('id')).order_by('-count')
    return Response({
        'total': queryset.count(),
        'last_24h': queryset.filter(timestamp__gte=since).count(),
        'by_action': {row['action']: row['count'] for row in by_action},
        'by_severity': {row['severity']: row['count'] for row in by_severity},
        'by_entity_type': {row['entity_type']: row['count'] for row in by_entity},
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrAuditor])
def audit_log_export(request):
    """CSV download of the filtered audit trail"""
    queryset = AuditLogFilter(request.query_params, queryset=AuditLog.objects.select_related('user')).qs

    response = HttpResponse(content_type='text/csv')
    filename = f"audit-logs-{timezone.now():%Y%m%d-%H%M%S}.csv"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'

    writer = csv.writer(response)
    writer.writerow(['Timestamp', 'User', 'Action', 'Entity Type', 'Entity ID', 'Severity', 'Description', 'IP Address'])
    for log in queryset.order_by('-timestamp').iterator():
        writer.writerow([
            log.timestamp.isoformat(),
            log.user.email if log.user else 'SYSTEM',
            log.action,
            log.entity_type,
            log.entity_id,
            log.severity,
            log.description,
            log.ip_address or '',
        ])
    create_audit_log(request=request, action='export', entity_type='AuditLog', entity_id='csv',
                     description='Exported audit logs')
    return response


# Notification views
def _active_notifications(user):
    now = timezone.now()
    return Notification.objects.filter(recipient=user).filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def notification_list_create(request):
    """List my notifications, or (managers) send one"""
    if request.method == 'GET':
        queryset = _active_notifications(request.user).select_related('sender')
        is_read = request.query_params.get('is_read')
        if is_read is not None:
            queryset = queryset.filter(is_read=is_read.lower() in ('1', 'true', 'yes'))
        type_filter = request.query_params.get('type')
        if type_filter:
            queryset = queryset.filter(type=type_filter)
        return paginated_response(request, queryset, NotificationSerializer, default_limit=20)
    else:
        if not is_manager(request.user):
            return Response({'detail': 'Admin or inventory manager access required.'}, status=status.HTTP_403_FORBIDDEN)
        serializer = NotificationCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        recipients = User.objects.filter(
            Q(pk__in=data['recipients']) | Q(role__in=data['roles']), is_active=True
        ).distinct()
        created = notify_users(
            recipients, data['title'], data['message'], type=data['type'], priority=data['priority'],
            sender=request.user, data=data.get('data'), action_url=data.get('action_url'),
            expires_at=data.get('expires_at'),
        )
        return Response({'sent': len(created)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_unread_count(request):
    return Response({'unread_count': _active_notifications(request.user).filter(is_read=False).count()})


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def notification_mark_read(request, pk):
    notification = get_object_or_404(Notification, pk=pk, recipient=request.user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=['is_read', 'read_at', 'updated_at'])
    return Response(NotificationSerializer(notification).data)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def notification_mark_all_read(request):
    updated = Notification.objects.filter(recipient=request.user, is_read=False).update(
        is_read=True, read_at=timezone.now()
    )
    return Response({'updated': updated})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def notification_delete(request, pk):
    notification = get_object_or_404(Notification, pk=pk, recipient=request.user)
    notification.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def notification_clear_read(request):
    deleted, _ = Notification.objects.filter(recipient=request.user, is_read=True).delete()
    return Response({'deleted': deleted})


# System settings views
def _settings_payload(settings_obj):
    payload = {
        section: mask_section(section, settings_obj.get_section(section))
        for section in SystemSettings.SECTIONS
    }
    payload['last_modified_by'] = settings_obj.last_modified_by_id
    payload['updated_at'] = settings_obj.updated_at
    return payload


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def settings_list(request):
    """All settings sections"""
    return Response(_settings_payload(SystemSettings.load()))


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def settings_section(request, section):
    """
    Read or merge-update one settings section.

    Keys missing from the body keep their stored value; every supplied key
    is validated against the section rules before anything is written.
    """
    if section not in SystemSettings.SECTIONS:
        return Response({'error': f"Unknown settings section '{section}'."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(mask_section(section, SystemSettings.load().get_section(section)))
    return update_settings_section(request, section)


def update_settings_section(request, section):
    """Validate request.data, merge it into ``section`` and record the change"""
    settings_obj = SystemSettings.load()
    cleaned, errors = validate_section(section, request.data)
    if errors:
        return Response({'errors': errors}, status=status.HTTP_400_BAD_REQUEST)

    old_values = settings_obj.get_section(section)
    new_values = dict(old_values)
    # a masked secret sent back unchanged keeps the stored value
    new_values.update({k: v for k, v in cleaned.items() if v != MASK})
    setattr(settings_obj, section, new_values)
    settings_obj.last_modified_by = request.user
    settings_obj.save()

    SettingsHistory.objects.create(
        section=section,
        changed_by=request.user,
        old_values=mask_section(section, old_values),
        new_values=mask_section(section, new_values),
        ip_address=get_client_ip(request),
    )
    create_audit_log(request=request, action='settings_update', entity_type='SystemSettings', entity_id=section,
                     description=f"Updated {section} settings ({', '.join(sorted(cleaned))})",
                     old_values=mask_section(section, old_values), new_values=mask_section(section, new_values))
    logger.info(f"{request.user.email} updated {section} settings")
    return Response(mask_section(section, new_values))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def settings_reset(request, section):
    if section not in SystemSettings.SECTIONS:
        return Response({'error': f"Unknown settings section '{section}'."}, status=status.HTTP_404_NOT_FOUND)

    settings_obj = SystemSettings.load()
    old_values = settings_obj.get_section(section)
    defaults = dict(SECTION_DEFAULTS[section])
    setattr(settings_obj, section, defaults)
    settings_obj.last_modified_by = request.user
    settings_obj.save()

    SettingsHistory.objects.create(
        section=section, changed_by=request.user,
        old_values=mask_section(section, old_values), new_values=mask_section(section, defaults),
        ip_address=get_client_ip(request),
    )
    create_audit_log(request=request, action='settings_reset', entity_type='SystemSettings', entity_id=section,
                     description=f"Reset {section} settings to defaults", severity='warning')
    return Response(mask_section(section, defaults))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def settings_history(request):
    queryset = SettingsHistory.objects.select_related('changed_by')
    section = request.query_params.get('section')
    if section:
        queryset = queryset.filter(section=section)
    return paginated_response(request, queryset, SettingsHistorySerializer, default_limit=20)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Search assets, vendors, purchase orders and (admins) users"""
    query = request.query_params.get('q', '').strip()

    results = {
        'assets': [],
        'vendors': [],
        'purchase_orders': [],
        'users': [],
    }
    if not query:
        return Response(results)

    from deadstock.assets.filters import AssetFilter
    from deadstock.assets.models import Asset
    from deadstock.assets.serializers import AssetListSerializer
    from deadstock.vendors.models import Vendor
    from deadstock.vendors.serializers import VendorSerializer
    from deadstock.purchasing.models import PurchaseOrder
    from deadstock.purchasing.serializers import PurchaseOrderListSerializer

    assets = Asset.objects.select_related('assigned_user', 'vendor')
    if request.user.role == User.ROLE_EMPLOYEE and not request.user.is_superuser:
        assets = assets.filter(assigned_user=request.user)
    assets = AssetFilter({'search': query}, queryset=assets).qs[:20]
    results['assets'] = AssetListSerializer(assets, many=True).data

    if request.user.role != User.ROLE_EMPLOYEE or request.user.is_superuser:
        vendors = Vendor.objects.filter(
            Q(company_name__icontains=query) |
            Q(vendor_code__icontains=query) |
            Q(contact_person__icontains=query) |
            Q(email__icontains=query)
        )[:20]
        results['vendors'] = VendorSerializer(vendors, many=True).data

    if is_manager(request.user):
        orders = PurchaseOrder.objects.select_related('vendor').filter(
            Q(po_number__icontains=query) | Q(vendor__company_name__icontains=query)
        )[:20]
        results['purchase_orders'] = PurchaseOrderListSerializer(orders, many=True).data

    if request.user.is_superuser or request.user.role == User.ROLE_ADMIN:
        users = UserFilter({'search': query}, queryset=User.objects.all()).qs[:20]
        results['users'] = UserSerializer(users, many=True).data

    return Response(results)
