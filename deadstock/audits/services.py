"""
Scheduled audit engine: recurrence, scoping, run creation, reminders and
per-asset progress.

``check_and_trigger_due_audits`` and ``send_due_reminders`` are driven by
``manage.py run_scheduled_audits`` from an external scheduler.
"""
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from deadstock.assets.models import Asset
from deadstock.core.exceptions import BusinessRuleError
from deadstock.core.models import User
from deadstock.core.notifications import notify_users, send_email_notification
from deadstock.core.permissions import has_role
from deadstock.core.utils import add_months, create_audit_log
from .models import ScheduledAudit, ScheduledAuditRun, AuditRunEntry

logger = logging.getLogger('deadstock.audits')

CUSTOM_FILTER_FIELDS = ('status', 'condition', 'asset_type', 'location', 'department', 'manufacturer')
SCOPE_FIELDS = {
    'department': 'department',
    'location': 'location',
    'category': 'asset_type',
}
ENTRY_COUNTERS = {
    'found': 'assets_found',
    'not_found': 'assets_not_found',
    'damaged': 'assets_damaged',
    'missing': 'assets_missing',
}


INTERVAL_DAYS = {'daily': 1, 'weekly': 7}
INTERVAL_MONTHS = {'monthly': 1, 'quarterly': 3, 'yearly': 12}


def calculate_next_run_date(start_date, recurrence_type, last_run=None):
    """
    First occurrence after ``last_run`` (or after ``start_date`` when the
    audit never ran). One-off audits have no next run.

    Occurrences are counted from ``start_date``, so a monthly audit starting
    on Jan 31 runs on Feb 28, Mar 31, Apr 30 and so on.
    """
    if hasattr(last_run, 'date'):
        last_run = timezone.localtime(last_run).date() if timezone.is_aware(last_run) else last_run.date()
    if recurrence_type not in INTERVAL_DAYS and recurrence_type not in INTERVAL_MONTHS:
        return None
    base = last_run or start_date
    if base < start_date:
        return start_date

    if recurrence_type in INTERVAL_DAYS:
        step = INTERVAL_DAYS[recurrence_type]
        periods = (base - start_date).days // step + 1
        return start_date + timedelta(days=periods * step)

    step = INTERVAL_MONTHS[recurrence_type]
    periods = ((base.year - start_date.year) * 12 + base.month - start_date.month) // step
    candidate = add_months(start_date, periods * step)
    while candidate <= base:
        periods += 1
        candidate = add_months(start_date, periods * step)
    return candidate


def _narrow(queryset, field, value):
    if isinstance(value, (list, tuple)):
        return queryset.filter(**{f'{field}__in': value})
    return queryset.filter(**{f'{field}__iexact': value})


def build_asset_queryset(scope_type, scope_config=None):
    """Assets covered by an audit scope; disposed assets are never audited"""
    scope_config = scope_config or {}
    queryset = Asset.objects.exclude(status=Asset.STATUS_DISPOSED)

    if scope_type in SCOPE_FIELDS:
        value = scope_config.get(scope_type)
        if value in (None, '', []):
            return queryset.none()
        return _narrow(queryset, SCOPE_FIELDS[scope_type], value)

    if scope_type == 'custom_filter':
        for field, value in scope_config.items():
            if field not in CUSTOM_FILTER_FIELDS or value in (None, '', []):
                continue
            queryset = _narrow(queryset, field, value)
    return queryset


def audit_recipients(audit):
    users = list(audit.assigned_auditors.filter(is_active=True))
    users += [user for user in audit.notification_recipients.filter(is_active=True) if user not in users]
    return users


def _advance_schedule(audit, today):
    audit.next_run_date = calculate_next_run_date(audit.start_date, audit.recurrence_type, last_run=today)
    if audit.next_run_date is None or (audit.end_date and audit.next_run_date > audit.end_date):
        audit.next_run_date = None
        audit.status = ScheduledAudit.STATUS_COMPLETED


def trigger_run(audit, user=None, today=None, request=None):
    """Create a run for ``audit`` covering its current scope"""
    if audit.status != ScheduledAudit.STATUS_ACTIVE:
        raise BusinessRuleError(f"Audit '{audit.name}' is {audit.status}; only active audits can run.")

    now = timezone.now()
    today = today or timezone.localdate()
    assets = list(build_asset_queryset(audit.scope_type, audit.scope_config).values_list('pk', flat=True))
    auditors = list(audit.assigned_auditors.filter(is_active=True))

    with transaction.atomic():
        run = ScheduledAuditRun.objects.create(
            scheduled_audit=audit,
            run_date=now,
            total_assets=len(assets),
        )
        run.assets_to_audit.set(assets)
        run.assigned_auditors.set(auditors)
        if not assets:
            run.status = ScheduledAuditRun.STATUS_COMPLETED
            run.completion_percentage = Decimal('100')
            run.completed_at = now
            run.summary_notes = 'No assets matched the audit scope.'
            run.save(update_fields=['status', 'completion_percentage', 'completed_at', 'summary_notes', 'updated_at'])

        audit.total_runs += 1
        if not assets:
            audit.completed_runs += 1
        audit.last_run_date = now
        _advance_schedule(audit, today)
        audit.save(update_fields=['total_runs', 'completed_runs', 'last_run_date', 'next_run_date',
                                  'status', 'updated_at'])

    create_audit_log(
        request=request, user=user, action='audit_run_triggered',
        entity_type='ScheduledAudit', entity_id=audit.pk,
        description=f"Audit run #{run.pk} of '{audit.name}' started with {len(assets)} assets"
                    + ('' if user or request else ' (scheduled)'),
        changes={'run_id': run.pk, 'total_assets': len(assets)},
    )
    notify_users(
        audit_recipients(audit),
        f'Audit started: {audit.name}',
        f"A {audit.get_audit_type_display().lower()} audit of {len(assets)} assets is ready to perform.",
        type='audit', priority='medium', sender=user,
        data={'scheduled_audit_id': audit.pk, 'run_id': run.pk},
        action_url=f'/audits/runs/{run.pk}',
    )
    logger.info(f"Triggered run {run.pk} for audit {audit.pk} ({len(assets)} assets)")
    return run


def check_and_trigger_due_audits(today=None):
    """
    Start every active audit whose next run date has arrived. Audits past
    their end date are closed. One failing audit does not stop the others.
    """
    today = today or timezone.localdate()
    summary = {'triggered': 0, 'completed': 0, 'failed': 0, 'runs': []}

    expired = ScheduledAudit.objects.filter(
        status=ScheduledAudit.STATUS_ACTIVE, end_date__isnull=False, end_date__lt=today
    )
    summary['completed'] = expired.update(status=ScheduledAudit.STATUS_COMPLETED, next_run_date=None,
                                          updated_at=timezone.now())

    due = ScheduledAudit.objects.filter(
        status=ScheduledAudit.STATUS_ACTIVE, next_run_date__isnull=False, next_run_date__lte=today
    )
    for audit in due:
        try:
            run = trigger_run(audit, today=today)
        except Exception as e:
            logger.error(f"Scheduled audit {audit.pk} ('{audit.name}') failed to start: {e}")
            ScheduledAudit.objects.filter(pk=audit.pk).update(failed_runs=F('failed_runs') + 1)
            summary['failed'] += 1
            continue
        summary['triggered'] += 1
        summary['runs'].append(run.pk)
    return summary


def send_due_reminders(today=None):
    """Remind auditors of runs exactly ``reminder_days_before`` days away"""
    today = today or timezone.localdate()
    sent = 0
    audits = ScheduledAudit.objects.filter(
        status=ScheduledAudit.STATUS_ACTIVE, reminder_enabled=True, next_run_date__isnull=False
    ).prefetch_related('assigned_auditors', 'notification_recipients')

    for audit in audits:
        if (audit.next_run_date - today).days != audit.reminder_days_before:
            continue
        recipients = audit_recipients(audit)
        if not recipients:
            continue
        title = f'Upcoming audit: {audit.name}'
        message = (f"The {audit.get_audit_type_display().lower()} audit '{audit.name}' is scheduled for "
                   f"{audit.next_run_date:%d %b %Y}.")
        reminded = False
        if audit.reminder_send_notification:
            reminded = bool(notify_users(
                recipients, title, message, type='audit',
                data={'scheduled_audit_id': audit.pk}, action_url='/audits/calendar',
            )) or reminded
        if audit.reminder_send_email:
            reminded = bool(send_email_notification(recipients, title, message)) or reminded
        if reminded:
            sent += 1
    logger.info(f"Sent {sent} audit reminders for {today}")
    return sent


def can_record(run, user):
    return has_role(user, User.ROLE_ADMIN) or run.assigned_auditors.filter(pk=user.pk).exists()


def record_progress(run, user, asset, status, condition='', location='', notes='',
                    checklist_responses=None, request=None):
    """Record the audit result for one asset of a run"""
    if run.status not in ScheduledAuditRun.OPEN_STATUSES:
        raise BusinessRuleError(f"This audit run is {run.status}.")
    if not can_record(run, user):
        raise BusinessRuleError('You are not assigned to this audit run.', status_code=403)
    if not run.assets_to_audit.filter(pk=asset.pk).exists():
        raise BusinessRuleError(f"Asset {asset.unique_asset_id} is not part of this audit run.")
    if run.entries.filter(asset=asset).exists():
        raise BusinessRuleError(f"Asset {asset.unique_asset_id} was already audited in this run.")

    now = timezone.now()
    audit = run.scheduled_audit
    with transaction.atomic():
        entry = AuditRunEntry.objects.create(
            run=run, asset=asset, audited_by=user, status=status, condition=condition or '',
            location=location or '', notes=notes or '', checklist_responses=checklist_responses or [],
        )

        counter = ENTRY_COUNTERS[status]
        setattr(run, counter, getattr(run, counter) + 1)
        audited = run.entries.count()
        run.completion_percentage = (Decimal(audited * 100) / Decimal(run.total_assets or 1)).quantize(
            Decimal('0.01'), rounding=ROUND_HALF_UP
        )
        if run.status == ScheduledAuditRun.STATUS_PENDING:
            run.status = ScheduledAuditRun.STATUS_IN_PROGRESS
            run.started_at = now
        if audited >= run.total_assets:
            run.status = ScheduledAuditRun.STATUS_COMPLETED
            run.completed_at = now
            ScheduledAudit.objects.filter(pk=audit.pk).update(completed_runs=F('completed_runs') + 1)
        run.save()

        asset.last_audit_date = now
        update_fields = ['last_audit_date', 'updated_at']
        if condition:
            asset.condition = condition
            update_fields.append('condition')
        if status == 'damaged' and asset.status != Asset.STATUS_DISPOSED:
            asset.status = Asset.STATUS_DAMAGED
            update_fields.append('status')
        asset.save(update_fields=update_fields)

    create_audit_log(
        request=request, user=user, action='asset_audited', entity_type='Asset', entity_id=asset.pk,
        description=f"{asset.unique_asset_id} audited as {status} in run #{run.pk}",
        severity='warning' if status in ('not_found', 'missing', 'damaged') else 'info',
        changes={'audit_run_id': run.pk, 'status': status, 'condition': condition, 'location': location},
    )

    if run.status == ScheduledAuditRun.STATUS_COMPLETED:
        recipients = list(audit.notification_recipients.filter(is_active=True))
        notify_users(
            recipients,
            f'Audit completed: {audit.name}',
            f"Run #{run.pk} finished: {run.assets_found} found, {run.assets_not_found} not found, "
            f"{run.assets_damaged} damaged, {run.assets_missing} missing.",
            type='audit', sender=user, data={'scheduled_audit_id': audit.pk, 'run_id': run.pk},
        )
        logger.info(f"Audit run {run.pk} completed")
    return entry


def cancel_run(run, user, reason='', request=None):
    if run.status not in ScheduledAuditRun.OPEN_STATUSES:
        raise BusinessRuleError(f"Only pending or in-progress runs can be cancelled; this run is {run.status}.")
    run.status = ScheduledAuditRun.STATUS_CANCELLED
    if reason:
        run.summary_notes = f"{run.summary_notes}\n{reason}".strip()
    run.save(update_fields=['status', 'summary_notes', 'updated_at'])
    create_audit_log(
        request=request, user=user, action='audit_run_cancelled', entity_type='ScheduledAudit',
        entity_id=run.scheduled_audit_id, description=f"Audit run #{run.pk} cancelled",
        changes={'run_id': run.pk, 'reason': reason},
    )
    return run


def planned_dates(audit, first_day, last_day):
    """Upcoming run dates of ``audit`` falling within [first_day, last_day]"""
    dates = []
    current = audit.next_run_date
    if current is not None and current < first_day:
        current = calculate_next_run_date(audit.start_date, audit.recurrence_type,
                                          last_run=first_day - timedelta(days=1))
    while current is not None and current <= last_day and len(dates) < 62:
        if audit.end_date and current > audit.end_date:
            break
        if current >= first_day:
            dates.append(current)
        current = calculate_next_run_date(audit.start_date, audit.recurrence_type, last_run=current)
    return dates
