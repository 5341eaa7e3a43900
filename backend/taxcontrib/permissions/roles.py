# Overview: Role -> action grants. Roles are fixed: admin and personnel.

from .helpers import get_all_action_codes


ROLE_ACTIONS = {
    # Admin gets every action
    "admin": frozenset(get_all_action_codes()),
    "personnel": frozenset({
        "view-taxpayers",
        "create-taxpayer",
        "edit-taxpayer-fields",
        "request-deletion",
        "view-documents",
        "attach-document",
        "delete-document",
        "export-listing",
    }),
}
