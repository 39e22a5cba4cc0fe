"""
RBAC signals.

Keeps a user's stored module assignment in line with its role: when the
role changes, the assignment is recomputed by ModuleAssignmentService.
"""
from django.db.models.signals import pre_save
from django.dispatch import receiver

from apps.core.logging import SecurityLogger


@receiver(pre_save, sender='rbac.User')
def reassign_modules_on_role_change(sender, instance, update_fields=None, **kwargs):
    """
    Recompute ``assigned_modules`` when ``role`` changes.

    Saves restricted with ``update_fields`` must list ``assigned_modules``
    next to ``role`` for the new assignment to be written.
    """
    if instance.pk is None:
        return
    if update_fields is not None and 'role' not in update_fields:
        return

    previous_role = sender.objects.filter(pk=instance.pk).values_list('role', flat=True).first()
    if previous_role is None or previous_role == instance.role:
        return

    from apps.rbac.services import ModuleAssignmentService

    instance.assigned_modules = ModuleAssignmentService.modules_for_role(
        instance.role, instance.organization
    )

    SecurityLogger.log_event(
        'role_changed',
        level='info',
        user_id=instance.pk,
        previous_role=previous_role,
        new_role=instance.role,
        assigned_modules=instance.assigned_modules,
    )
