"""
Shared persistence helper for FSM-managed payment models.
"""

from __future__ import annotations

from django_fsm import ConcurrentTransition, ConcurrentTransitionMixin

from payments.exceptions import StaleRecordError


class TransitionSaveMixin(ConcurrentTransitionMixin):
    """
    ConcurrentTransitionMixin plus a save that speaks the domain's errors.

    Saving after a transition issues
    ``UPDATE ... WHERE id = %s AND status = <status when loaded>``.
    If another writer moved the row first, no row matches and the save
    raises StaleRecordError instead of silently overwriting.
    """

    def save_transition(self, action: str) -> None:
        try:
            self.save()
        except ConcurrentTransition as e:
            raise StaleRecordError(
                f"{self.__class__.__name__} {self.pk} changed while applying {action}",
                details={"id": str(self.pk), "action": action},
            ) from e
