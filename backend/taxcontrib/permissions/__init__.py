# Overview: Action catalogue package.
# Re-exports the action definitions, role grants and lookup helpers.

from .categories import ActionCategory
from .definitions import (
    ACTION_DEFINITIONS,
    TAXPAYER_ACTIONS,
    WORKFLOW_ACTIONS,
    DOCUMENT_ACTIONS,
    STAFF_ACTIONS,
    REPORTING_ACTIONS,
)
from .roles import ROLE_ACTIONS
from .helpers import (
    get_all_action_codes,
    get_action_definition,
    is_mutating,
)

__all__ = [
    "ActionCategory",
    "ACTION_DEFINITIONS",
    "TAXPAYER_ACTIONS",
    "WORKFLOW_ACTIONS",
    "DOCUMENT_ACTIONS",
    "STAFF_ACTIONS",
    "REPORTING_ACTIONS",
    "ROLE_ACTIONS",
    "get_all_action_codes",
    "get_action_definition",
    "is_mutating",
]
