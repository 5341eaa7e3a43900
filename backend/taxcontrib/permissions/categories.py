# Overview: Action category constants for grouping related actions.


class ActionCategory:
    """Action categories for organization and UI display."""
    TAXPAYERS = "TAXPAYERS"
    WORKFLOW = "WORKFLOW"
    DOCUMENTS = "DOCUMENTS"
    STAFF = "STAFF"
    REPORTING = "REPORTING"
