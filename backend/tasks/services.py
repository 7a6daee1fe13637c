import logging

from django.db.models import F
from django.utils import timezone

from backend.core.exceptions import NotFound, ValidationFailed
from backend.core.models import User
from backend.inventory.models import Order
from backend.notifications import services as push
from backend.webhooks import services as webhooks
from .models import OrderTask

logger = logging.getLogger('backend.tasks')

NAME_MAX_LENGTH = 200


def _ordered(tasks):
    return tasks.select_related('assignee', 'order').order_by(
        'is_complete', F('due_date').asc(nulls_last=True), 'created_at'
    )


def _clean_name(name):
    name = (name or '').strip()
    if not name:
        raise ValidationFailed('Task name is required')
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationFailed(f"Task name cannot exceed {NAME_MAX_LENGTH} characters")
    return name


def _get_assignee(assignee_id, company_id):
    if assignee_id is None:
        return None
    assignee = User.objects.filter(pk=assignee_id, company_id=company_id).first()
    if assignee is None:
        raise ValidationFailed(f"User with ID {assignee_id} not found")
    return assignee


def get_task(task_id):
    task = OrderTask.objects.select_related('assignee', 'order').filter(pk=task_id).first()
    if task is None:
        raise NotFound('Task not found')
    return task


def tasks_for_order(order_id):
    return _ordered(OrderTask.objects.filter(order_id=order_id))


def tasks_for_user(user, include_completed=False, due_before=None):
    tasks = OrderTask.objects.filter(assignee=user)
    if not include_completed:
        tasks = tasks.filter(is_complete=False)
    if due_before is not None:
        tasks = tasks.filter(due_date__date__lte=due_before)
    return _ordered(tasks)


def _notify_assignee(task, assigned_by=None):
    if task.assignee is None or (assigned_by is not None and assigned_by.id == task.assignee_id):
        return
    try:
        push.send_to_user(
            task.assignee,
            push.TYPE_TASK_ASSIGNED,
            'New task assigned',
            f"{task.name} ({task.order.name})",
            entity_id=task.id,
            url=f"/orders/{task.order_id}/tasks",
        )
    except Exception as e:
        logger.warning(f"Failed to send task assignment notification for task {task.id}: {str(e)}")


def _task_event_data(task):
    return {
        'id': task.id,
        'order_id': task.order_id,
        'name': task.name,
        'assignee_id': task.assignee_id,
        'due_date': task.due_date,
        'is_complete': task.is_complete,
        'completed_at': task.completed_at,
    }


def create_task(order_id, name, assignee_id=None, due_date=None, created_by=None):
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        raise ValidationFailed(f"Order with ID {order_id} not found")
    assignee = _get_assignee(assignee_id, order.company_id)

    task = OrderTask.objects.create(order=order, name=_clean_name(name), assignee=assignee, due_date=due_date)
    logger.info(f"Created task '{task.name}' for order {order.id}")
    _notify_assignee(task, created_by)
    webhooks.trigger_event(webhooks.TASK_CREATED, task.id, _task_event_data(task), order.company_id)
    return task


def assign_task(task, assignee_id, assigned_by=None):
    assignee = _get_assignee(assignee_id, task.order.company_id)
    previous = task.assignee_id
    task.assignee = assignee
    task.save(update_fields=['assignee', 'updated_at'])
    logger.info(f"Task {task.id} reassigned from user {previous} to user {assignee_id}")
    if assignee is not None and assignee.id != previous:
        _notify_assignee(task, assigned_by)
    return task


def set_complete(task, is_complete):
    was_complete = task.is_complete
    task.is_complete = is_complete
    task.completed_at = timezone.now() if is_complete else None
    task.save(update_fields=['is_complete', 'completed_at', 'updated_at'])
    logger.info(f"Task {task.id} marked as {'complete' if is_complete else 'incomplete'}")
    if is_complete and not was_complete:
        webhooks.trigger_event(webhooks.TASK_COMPLETED, task.id, _task_event_data(task), task.order.company_id)
    return task


def update_task(task, name=None, due_date=None, clear_due_date=False):
    if name is not None:
        task.name = _clean_name(name)
    if due_date is not None or clear_due_date:
        task.due_date = due_date
    task.save()
    return task


def delete_task(task):
    task_id = task.id
    task.delete()
    logger.info(f"Deleted task {task_id}")
