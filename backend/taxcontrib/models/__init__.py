from .tenancy import Organisation
from .auth import User, Profile, UserRole, SessionToken
from .security import SecurityEvent
from .contribuables import Contribuable, DeletionRequest
from .documents import Document

__all__ = [
    'Organisation',
    'User', 'Profile', 'UserRole', 'SessionToken',
    'SecurityEvent',
    'Contribuable', 'DeletionRequest',
    'Document',
]
