# Overview: All action definitions organized by category.
# Each action is defined as: (code, name, description, category, mutating)

from .categories import ActionCategory


# -- TAXPAYERS --

TAXPAYER_ACTIONS = [
    (
        "view-taxpayers",
        "Voir les contribuables",
        "List and open taxpayer records of the organisation",
        ActionCategory.TAXPAYERS,
        False,
    ),
    (
        "create-taxpayer",
        "Enregistrer un contribuable",
        "Create a taxpayer record (always starts en_attente)",
        ActionCategory.TAXPAYERS,
        True,
    ),
    (
        "edit-taxpayer-fields",
        "Modifier un contribuable",
        "Edit non-status fields of a taxpayer record",
        ActionCategory.TAXPAYERS,
        True,
    ),
    (
        "delete-taxpayer",
        "Supprimer un contribuable",
        "Delete a taxpayer record and its attachments",
        ActionCategory.TAXPAYERS,
        True,
    ),
    (
        "request-deletion",
        "Demander une suppression",
        "Ask an administrator to delete a taxpayer record",
        ActionCategory.TAXPAYERS,
        True,
    ),
    (
        "resolve-deletion",
        "Traiter une demande de suppression",
        "Approve or reject a pending deletion request",
        ActionCategory.TAXPAYERS,
        True,
    ),
]


# -- WORKFLOW --

WORKFLOW_ACTIONS = [
    (
        "validate",
        "Valider",
        "Transition en_attente -> valide",
        ActionCategory.WORKFLOW,
        True,
    ),
    (
        "reject",
        "Rejeter",
        "Transition en_attente -> rejete",
        ActionCategory.WORKFLOW,
        True,
    ),
    (
        "reopen",
        "Remettre en attente",
        "Administrative override: valide|rejete -> en_attente",
        ActionCategory.WORKFLOW,
        True,
    ),
]


# -- DOCUMENTS --

DOCUMENT_ACTIONS = [
    (
        "view-documents",
        "Voir les documents",
        "List attachments and open signed URLs",
        ActionCategory.DOCUMENTS,
        False,
    ),
    (
        "attach-document",
        "Ajouter un document",
        "Upload a file to a taxpayer record",
        ActionCategory.DOCUMENTS,
        True,
    ),
    (
        "delete-document",
        "Supprimer un document",
        "Remove an attachment (storage object then metadata)",
        ActionCategory.DOCUMENTS,
        True,
    ),
]


# -- STAFF --

STAFF_ACTIONS = [
    (
        "view-staff",
        "Voir le personnel",
        "List staff profiles and role assignments",
        ActionCategory.STAFF,
        False,
    ),
    (
        "create-staff",
        "Ajouter un employé",
        "Create identity, profile and role assignment",
        ActionCategory.STAFF,
        True,
    ),
    (
        "edit-staff",
        "Modifier un employé",
        "Edit profile fields and role",
        ActionCategory.STAFF,
        True,
    ),
    (
        "delete-staff",
        "Supprimer un employé",
        "Revoke role, deactivate identity, revoke sessions",
        ActionCategory.STAFF,
        True,
    ),
]


# -- REPORTING --

REPORTING_ACTIONS = [
    (
        "export-listing",
        "Exporter en PDF",
        "Export the filtered listing as a PDF document",
        ActionCategory.REPORTING,
        False,
    ),
]


ACTION_DEFINITIONS = (
    TAXPAYER_ACTIONS
    + WORKFLOW_ACTIONS
    + DOCUMENT_ACTIONS
    + STAFF_ACTIONS
    + REPORTING_ACTIONS
)
