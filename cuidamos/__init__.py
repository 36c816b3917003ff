"""
Cuidamos: authorization and collaboration core for small care teams.

Two concerns live here. The organization side decides who may see, create
or complete which patient's tasks and medications, combining a static role
table, nurse elevation and the shift roster. The care-plan side governs
personal plans shared through short-lived invite codes.
"""

__all__ = [
    "Action",
    "Role",
    "can_complete_for_patient",
    "can_role",
    "effective_role",
    "is_scheduled",
]

from .app.domain.policy import Action, Role, can_role, effective_role
from .app.domain.presence import is_scheduled
from .app.services.authz import can_complete_for_patient

__version__ = "0.1.0"
