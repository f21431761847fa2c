"""
Purchase order and invoice state changes.

Views validate payloads; everything that moves an order or invoice between
statuses goes through here so the event history, audit trail and
notifications stay consistent.
"""
import logging
from collections import Counter

from django.db import transaction
from django.utils import timezone

from deadstock.core.cache_utils import invalidate_dashboard_cache
from deadstock.core.exceptions import BusinessRuleError
from deadstock.core.notifications import notify_managers, notify_users
from deadstock.core.permissions import is_manager
from deadstock.core.utils import create_audit_log
from .models import PurchaseOrder, PurchaseOrderEvent, Invoice

logger = logging.getLogger('deadstock.purchasing')

EVENT_FOR_STATUS = {
    'pending_approval': 'submitted',
    'approved': 'approved',
    'rejected': 'rejected',
    'cancelled': 'cancelled',
    'sent_to_vendor': 'sent',
    'acknowledged': 'acknowledged',
    'in_progress': 'in_progress',
    'draft': 'reopened',
}
MANAGER_ONLY_STATUSES = ('approved', 'rejected', 'sent_to_vendor', 'acknowledged', 'in_progress')


def transition_order(order, new_status, user, comments='', request=None):
    if order.status == new_status:
        raise BusinessRuleError(f"Purchase order is already {order.get_status_display().lower()}.")
    if not order.can_transition_to(new_status):
        raise BusinessRuleError(f"Cannot move a purchase order from {order.status} to {new_status}.")
    if new_status in MANAGER_ONLY_STATUSES and not is_manager(user):
        raise BusinessRuleError('Only administrators and inventory managers can do this.', status_code=403)
    if new_status in ('pending_approval', 'cancelled', 'draft') and not is_manager(user) \
            and order.requested_by_id != user.pk:
        raise BusinessRuleError('Only the requester or a manager can change this order.', status_code=403)
    if new_status == 'pending_approval' and not order.items.exists():
        raise BusinessRuleError('A purchase order needs at least one item.')

    old_status = order.status
    with transaction.atomic():
        order.status = new_status
        update_fields = ['status', 'updated_at']
        if new_status == 'approved':
            order.approved_by = user
            update_fields.append('approved_by')
        order.save(update_fields=update_fields)
        PurchaseOrderEvent.objects.create(
            purchase_order=order, action=EVENT_FOR_STATUS[new_status], performed_by=user, comments=comments
        )

    create_audit_log(
        request=request, user=user, action=f"purchase_order_{EVENT_FOR_STATUS[new_status]}",
        entity_type='PurchaseOrder', entity_id=order.pk,
        description=f"{order.po_number}: {old_status} -> {new_status}",
        changes={'status': {'from': old_status, 'to': new_status}},
    )

    if new_status == 'pending_approval':
        notify_managers(
            'Purchase order awaiting approval',
            f"{order.po_number} ({order.vendor.company_name}, {order.total_amount} {order.currency}) "
            f"was submitted for approval.",
            type='approval', sender=user, exclude=user,
            data={'purchase_order_id': order.pk}, action_url=f'/purchase/orders/{order.pk}',
        )
    elif new_status in ('approved', 'rejected') and order.requested_by_id and order.requested_by_id != user.pk:
        notify_users(
            [order.requested_by],
            f'Purchase order {new_status}',
            f"{order.po_number} was {new_status} by {user.name}." + (f" {comments}" if comments else ''),
            type='success' if new_status == 'approved' else 'warning',
            sender=user, data={'purchase_order_id': order.pk}, action_url=f'/purchase/orders/{order.pk}',
        )
    logger.info(f"{order.po_number} {old_status} -> {new_status} by {user.email}")
    return order


def receive_items(order, lines, user, comments='', request=None):
    """
    Book delivered quantities against order lines.

    ``lines`` is a list of ``{'item': <item id>, 'quantity': n}``. Lines for the
    same item are summed; the total adds to what was already received and may
    not exceed what was ordered.
    """
    if order.status not in PurchaseOrder.RECEIVABLE_STATUSES:
        raise BusinessRuleError(f"Cannot receive goods on a purchase order that is {order.status}.")

    items = {item.pk: item for item in order.items.all()}
    totals = Counter()
    for line in lines:
        if line['item'] not in items:
            raise BusinessRuleError(f"Item {line['item']} does not belong to {order.po_number}.")
        totals[line['item']] += line['quantity']
    for item_id, quantity in totals.items():
        item = items[item_id]
        if quantity > item.quantity_outstanding:
            raise BusinessRuleError(
                f"Cannot receive {quantity} of '{item.description}': "
                f"only {item.quantity_outstanding} outstanding."
            )

    old_status = order.status
    with transaction.atomic():
        for item_id, quantity in totals.items():
            item = items[item_id]
            item.quantity_received += quantity
            item.save(update_fields=['quantity_received'])

        received = ', '.join(f"{items[line['item']].description} x{line['quantity']}" for line in lines)
        PurchaseOrderEvent.objects.create(
            purchase_order=order, action='received', performed_by=user,
            comments=f"Received: {received}" + (f". {comments}" if comments else ''),
        )
        if all(item.quantity_received >= item.quantity for item in items.values()):
            order.status = 'completed'
            order.actual_delivery_date = timezone.localdate()
            PurchaseOrderEvent.objects.create(purchase_order=order, action='completed', performed_by=user)
        else:
            order.status = 'partially_received'
        order.save(update_fields=['status', 'actual_delivery_date', 'updated_at'])

    create_audit_log(
        request=request, user=user, action='purchase_order_received',
        entity_type='PurchaseOrder', entity_id=order.pk,
        description=f"{order.po_number}: received {received}",
        changes={'status': {'from': old_status, 'to': order.status}},
    )
    if order.status == 'completed' and order.requested_by_id:
        notify_users(
            [order.requested_by], 'Purchase order delivered',
            f"All items on {order.po_number} have been received.",
            type='success', sender=user, data={'purchase_order_id': order.pk},
        )
    return order


def transition_invoice(invoice, new_status, user, payment_date=None, payment_reference=None,
                       payment_method=None, request=None):
    if not invoice.can_transition_to(new_status):
        raise BusinessRuleError(f"Cannot move an invoice from {invoice.status} to {new_status}.")

    old_status = invoice.status
    invoice.status = new_status
    update_fields = ['status', 'updated_at']
    if new_status == 'approved':
        invoice.approved_by = user
        update_fields.append('approved_by')
    if new_status == 'paid':
        invoice.payment_date = payment_date or invoice.payment_date or timezone.localdate()
        update_fields.append('payment_date')
        if payment_reference is not None:
            invoice.payment_reference = payment_reference
            update_fields.append('payment_reference')
        if payment_method:
            invoice.payment_method = payment_method
            update_fields.append('payment_method')
    invoice.save(update_fields=update_fields)

    create_audit_log(
        request=request, user=user, action=f"invoice_{new_status}",
        entity_type='Invoice', entity_id=invoice.pk,
        description=f"{invoice.invoice_number}: {old_status} -> {new_status}",
        changes={'status': {'from': old_status, 'to': new_status}},
    )
    return invoice


def mark_overdue_invoices(today=None):
    """Flag unpaid invoices past their due date; returns the number changed"""
    today = today or timezone.localdate()
    count = Invoice.objects.filter(
        status__in=('sent', 'received', 'approved'), due_date__lt=today
    ).update(status='overdue', updated_at=timezone.now())
    if count:
        invalidate_dashboard_cache()
        notify_managers(
            'Invoices overdue',
            f"{count} invoice(s) passed their due date without payment.",
            type='warning', priority='high', action_url='/purchase/invoices?status=overdue',
        )
        logger.info(f"Marked {count} invoices overdue")
    return count
