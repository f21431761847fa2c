import calendar
import logging
from datetime import date, datetime, time

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from deadstock.core.permissions import IsAuditStaff, is_manager
from deadstock.core.utils import create_audit_log, paginated_response, snapshot
from .models import ScheduledAudit, ScheduledAuditRun
from .serializers import (
    ScheduledAuditSerializer, ScheduledAuditRunSerializer, ScheduledAuditRunDetailSerializer,
    AuditProgressSerializer, AuditRunEntrySerializer,
)
from . import services

logger = logging.getLogger('deadstock.audits')


def _visible_audits(user):
    queryset = ScheduledAudit.objects.select_related('created_by').prefetch_related('assigned_auditors')
    if is_manager(user):
        return queryset
    return queryset.filter(Q(created_by=user) | Q(assigned_auditors=user)).distinct()


def _can_manage(user, audit):
    return is_manager(user) or audit.created_by_id == user.pk


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def scheduled_audit_list_create(request):
    if request.method == 'GET':
        queryset = _visible_audits(request.user)
        for param in ('status', 'recurrence_type', 'audit_type', 'scope_type'):
            value = request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(description__icontains=search))
        return paginated_response(request, queryset, ScheduledAuditSerializer)

    serializer = ScheduledAuditSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    audit = serializer.save(created_by=request.user)
    if audit.auto_assign and not audit.assigned_auditors.exists():
        audit.assigned_auditors.add(request.user)
    create_audit_log(request=request, action='create', entity_type='ScheduledAudit', entity_id=audit.pk,
                     description=f"Scheduled {audit.recurrence_type} audit '{audit.name}'",
                     new_values=snapshot(audit))
    return Response(ScheduledAuditSerializer(audit).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def scheduled_audit_detail(request, pk):
    audit = get_object_or_404(_visible_audits(request.user), pk=pk)

    if request.method == 'GET':
        data = ScheduledAuditSerializer(audit).data
        data['recent_runs'] = ScheduledAuditRunSerializer(audit.runs.all()[:10], many=True).data
        return Response(data)

    if not _can_manage(request.user, audit):
        return Response({'detail': 'Only the creator or a manager can change this audit.'},
                        status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        if audit.runs.filter(status=ScheduledAuditRun.STATUS_IN_PROGRESS).exists():
            return Response({'error': 'Cannot delete an audit while one of its runs is in progress.'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', entity_type='ScheduledAudit', entity_id=audit.pk,
                         description=f"Deleted scheduled audit '{audit.name}'", severity='warning',
                         old_values=snapshot(audit))
        audit.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    old_values = snapshot(audit)
    serializer = ScheduledAuditSerializer(audit, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    audit = serializer.save()
    create_audit_log(request=request, action='update', entity_type='ScheduledAudit', entity_id=audit.pk,
                     description=f"Updated scheduled audit '{audit.name}'",
                     old_values=old_values, new_values=snapshot(audit))
    return Response(ScheduledAuditSerializer(audit).data)


def _set_status(request, pk, from_status, to_status):
    audit = get_object_or_404(_visible_audits(request.user), pk=pk)
    if not _can_manage(request.user, audit):
        return Response({'detail': 'Only the creator or a manager can change this audit.'},
                        status=status.HTTP_403_FORBIDDEN)
    if audit.status != from_status:
        return Response({'error': f"Audit is {audit.status}, expected {from_status}."},
                        status=status.HTTP_400_BAD_REQUEST)
    audit.status = to_status
    update_fields = ['status', 'updated_at']
    today = timezone.localdate()
    if to_status == ScheduledAudit.STATUS_ACTIVE and audit.next_run_date and audit.next_run_date < today:
        audit.next_run_date = today
        update_fields.append('next_run_date')
    audit.save(update_fields=update_fields)
    create_audit_log(request=request, action=f"audit_{'paused' if to_status == 'paused' else 'resumed'}",
                     entity_type='ScheduledAudit', entity_id=audit.pk,
                     description=f"Scheduled audit '{audit.name}' {from_status} -> {to_status}")
    return Response(ScheduledAuditSerializer(audit).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def scheduled_audit_pause(request, pk):
    return _set_status(request, pk, ScheduledAudit.STATUS_ACTIVE, ScheduledAudit.STATUS_PAUSED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def scheduled_audit_resume(request, pk):
    return _set_status(request, pk, ScheduledAudit.STATUS_PAUSED, ScheduledAudit.STATUS_ACTIVE)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def scheduled_audit_trigger(request, pk):
    """Start a run now, outside the schedule"""
    audit = get_object_or_404(_visible_audits(request.user), pk=pk)
    run = services.trigger_run(audit, user=request.user, request=request)
    return Response(ScheduledAuditRunDetailSerializer(run).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def scheduled_audit_runs(request, pk):
    audit = get_object_or_404(_visible_audits(request.user), pk=pk)
    queryset = audit.runs.select_related('scheduled_audit')
    run_status = request.query_params.get('status')
    if run_status:
        queryset = queryset.filter(status=run_status)
    return paginated_response(request, queryset, ScheduledAuditRunSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def audit_run_detail(request, pk):
    run = get_object_or_404(ScheduledAuditRun.objects.select_related('scheduled_audit'), pk=pk)
    return Response(ScheduledAuditRunDetailSerializer(run).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def audit_run_progress(request, pk):
    run = get_object_or_404(ScheduledAuditRun.objects.select_related('scheduled_audit'), pk=pk)
    serializer = AuditProgressSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    entry = services.record_progress(
        run, request.user, data['asset'], data['status'],
        condition=data.get('condition', ''),
        location=data.get('location', ''),
        notes=data.get('notes', ''),
        checklist_responses=data.get('checklist_responses'),
        request=request,
    )
    run.refresh_from_db()
    return Response({
        'entry': AuditRunEntrySerializer(entry).data,
        'completion_percentage': run.completion_percentage,
        'is_complete': run.status == ScheduledAuditRun.STATUS_COMPLETED,
        'run': ScheduledAuditRunSerializer(run).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def audit_run_cancel(request, pk):
    run = get_object_or_404(ScheduledAuditRun.objects.select_related('scheduled_audit'), pk=pk)
    if not _can_manage(request.user, run.scheduled_audit):
        return Response({'detail': 'Only the creator or a manager can cancel this run.'},
                        status=status.HTTP_403_FORBIDDEN)
    run = services.cancel_run(run, request.user, reason=request.data.get('reason', ''), request=request)
    return Response(ScheduledAuditRunSerializer(run).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def audit_reminders(request):
    sent = services.send_due_reminders()
    return Response({'message': f'Sent {sent} audit reminders', 'reminders_sent': sent})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAuditStaff])
def audit_calendar(request):
    """Runs and planned run dates for one month (?month=YYYY-MM, default current)"""
    month_param = request.query_params.get('month')
    try:
        if month_param:
            first_day = datetime.strptime(month_param, '%Y-%m').date()
        else:
            first_day = timezone.localdate().replace(day=1)
    except ValueError:
        return Response({'error': 'month must be formatted as YYYY-MM.'}, status=status.HTTP_400_BAD_REQUEST)
    last_day = date(first_day.year, first_day.month, calendar.monthrange(first_day.year, first_day.month)[1])

    audits = _visible_audits(request.user)
    start = timezone.make_aware(datetime.combine(first_day, time.min))
    end = timezone.make_aware(datetime.combine(last_day, time.max))
    runs = ScheduledAuditRun.objects.filter(
        scheduled_audit__in=audits, run_date__range=(start, end)
    ).select_related('scheduled_audit').order_by('run_date')

    planned = []
    for audit in audits.filter(status=ScheduledAudit.STATUS_ACTIVE):
        for planned_date in services.planned_dates(audit, first_day, last_day):
            planned.append({
                'scheduled_audit': audit.pk,
                'name': audit.name,
                'audit_type': audit.audit_type,
                'date': planned_date,
            })
    planned.sort(key=lambda item: item['date'])

    return Response({
        'month': first_day.strftime('%Y-%m'),
        'runs': ScheduledAuditRunSerializer(runs, many=True).data,
        'planned': planned,
    })
