import logging

from django.http import FileResponse
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from deadstock.core.models import User
from deadstock.core.permissions import IsAdminRole, IsAuditStaff, IsManager, has_role
from deadstock.core.utils import create_audit_log, paginated_response, snapshot
from . import dashboard, renderers, services
from .models import GeneratedReport, ReportTemplate
from .serializers import GenerateReportSerializer, GeneratedReportSerializer, ReportTemplateSerializer

logger = logging.getLogger('deadstock.reports')


def _int_param(request, name, default, maximum):
    try:
        value = int(request.query_params.get(name, default))
    except (TypeError, ValueError):
        return default
    return min(max(value, 1), maximum)


# Admin dashboard

@api_view(['GET'])
@permission_classes([IsAdminRole])
def dashboard_stats(request):
    return Response(dashboard.admin_stats())


@api_view(['GET'])
@permission_classes([IsAdminRole])
def dashboard_activities(request):
    return Response(dashboard.recent_activities(_int_param(request, 'limit', 10, 100)))


@api_view(['GET'])
@permission_classes([IsAdminRole])
def users_by_role(request):
    return Response(dashboard.users_by_role())


@api_view(['GET'])
@permission_classes([IsAdminRole])
def assets_by_category(request):
    return Response(dashboard.assets_by_category())


@api_view(['GET'])
@permission_classes([IsAdminRole])
def assets_by_location(request):
    return Response(dashboard.assets_by_location())


@api_view(['GET'])
@permission_classes([IsAdminRole])
def monthly_trends(request):
    return Response(dashboard.monthly_trends(_int_param(request, 'months', 6, 24)))


@api_view(['GET'])
@permission_classes([IsAdminRole])
def system_overview(request):
    return Response(dashboard.system_overview())


# Inventory manager dashboard

@api_view(['GET'])
@permission_classes([IsManager])
def inventory_stats(request):
    return Response(dashboard.inventory_stats())


@api_view(['GET'])
@permission_classes([IsManager])
def warranty_expiring(request):
    return Response(dashboard.warranty_expiring(_int_param(request, 'days', 90, 365)))


@api_view(['GET'])
@permission_classes([IsManager])
def maintenance_schedule(request):
    return Response(dashboard.maintenance_schedule(_int_param(request, 'days', 30, 365)))


@api_view(['GET'])
@permission_classes([IsManager])
def top_vendors(request):
    return Response(dashboard.top_vendors(_int_param(request, 'limit', 5, 50)))


@api_view(['GET'])
@permission_classes([IsManager])
def pending_approvals(request):
    return Response(dashboard.pending_approvals(_int_param(request, 'limit', 10, 100)))


# Auditor dashboard

@api_view(['GET'])
@permission_classes([IsAuditStaff])
def auditor_stats(request):
    return Response(dashboard.auditor_stats())


@api_view(['GET'])
@permission_classes([IsAuditStaff])
def audit_items(request):
    return Response(dashboard.audit_items(_int_param(request, 'limit', 50, 500)))


@api_view(['GET'])
@permission_classes([IsAuditStaff])
def condition_chart(request):
    return Response(dashboard.condition_chart())


@api_view(['GET'])
@permission_classes([IsAuditStaff])
def compliance(request):
    return Response(dashboard.compliance())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def employee_stats(request):
    """Figures for the requesting user's own assets and requests"""
    return Response(dashboard.employee_stats(request.user.pk))


# Report templates

@api_view(['GET', 'POST'])
@permission_classes([IsAuditStaff])
def template_list_create(request):
    if request.method == 'GET':
        queryset = ReportTemplate.objects.select_related('created_by')
        for field in ('category', 'status', 'frequency', 'kind'):
            value = request.query_params.get(field)
            if value:
                queryset = queryset.filter(**{field: value})
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(name__icontains=search)
        return paginated_response(request, queryset, ReportTemplateSerializer, default_limit=25)

    serializer = ReportTemplateSerializer(data=request.data)
    if serializer.is_valid():
        template = serializer.save(created_by=request.user)
        create_audit_log(request=request, action='create', entity_type='ReportTemplate', entity_id=template.pk,
                         description=f"Created report template {template.template_id} {template.name}",
                         new_values=snapshot(template))
        return Response(ReportTemplateSerializer(template).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuditStaff])
def template_detail(request, pk):
    template = get_object_or_404(ReportTemplate, pk=pk)

    if request.method == 'GET':
        return Response(ReportTemplateSerializer(template).data)

    if request.method in ('PUT', 'PATCH'):
        old_values = snapshot(template)
        serializer = ReportTemplateSerializer(template, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', entity_type='ReportTemplate', entity_id=template.pk,
                             description=f"Updated report template {template.template_id}",
                             old_values=old_values, new_values=snapshot(template))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='delete', entity_type='ReportTemplate', entity_id=template.pk,
                     description=f"Deleted report template {template.template_id}", severity='warning',
                     old_values=snapshot(template))
    template.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


# Generation and history

@api_view(['POST'])
@permission_classes([IsAuditStaff])
def generate(request):
    serializer = GenerateReportSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    report = services.generate_report(
        data['template'], data['format'], user=request.user,
        date_from=data.get('date_from'), date_to=data.get('date_to'),
        filters=data.get('filters'), request=request,
    )
    if report.status == 'failed':
        return Response({
            'error': 'Report generation failed',
            'message': report.error_message,
            'report': GeneratedReportSerializer(report).data,
        }, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(GeneratedReportSerializer(report).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuditStaff])
def history(request):
    queryset = GeneratedReport.objects.select_related('template', 'generated_by')
    for field in ('status', 'category', 'format'):
        value = request.query_params.get(field)
        if value:
            queryset = queryset.filter(**{field: value})
    if request.query_params.get('mine', '').lower() in ('1', 'true', 'yes'):
        queryset = queryset.filter(generated_by=request.user)
    return paginated_response(request, queryset, GeneratedReportSerializer)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuditStaff])
def history_detail(request, pk):
    report = get_object_or_404(GeneratedReport.objects.select_related('template', 'generated_by'), pk=pk)

    if request.method == 'GET':
        return Response(GeneratedReportSerializer(report).data)

    if report.generated_by_id != request.user.pk and not has_role(request.user, User.ROLE_ADMIN):
        return Response({'detail': 'Only the generating user or an admin can delete this report.'},
                        status=status.HTTP_403_FORBIDDEN)
    if report.file:
        report.file.delete(save=False)
    create_audit_log(request=request, action='delete', entity_type='GeneratedReport', entity_id=report.pk,
                     description=f"Deleted generated report {report.report_id}", severity='warning')
    report.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuditStaff])
def download(request, pk):
    report = get_object_or_404(GeneratedReport, pk=pk)
    if report.status != 'completed':
        return Response({'error': f"Report {report.report_id} is {report.status} and cannot be downloaded."},
                        status=status.HTTP_400_BAD_REQUEST)
    if not report.file or not report.file.storage.exists(report.file.name):
        logger.error(f"File for report {report.report_id} is missing from storage")
        return Response({'error': 'Report file not found.'}, status=status.HTTP_404_NOT_FOUND)

    services.record_download(report)
    logger.info(f"Report {report.report_id} downloaded by {request.user.username}")
    return FileResponse(
        report.file.open('rb'),
        as_attachment=True,
        filename=f"{report.report_id}.{report.file_extension}",
        content_type=renderers.CONTENT_TYPES[report.format],
    )
