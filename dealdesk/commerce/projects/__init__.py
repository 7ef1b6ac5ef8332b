"""Project reference data for the commerce engines.

Models:
- Project: a listing (price, owner, status, featured columns)
- ProjectStatus: listing lifecycle status
- UserContact: name and email used for notifications

Storage:
- ProjectStorage / UserDirectory protocols and in-memory implementations
"""

from dealdesk.commerce.projects.models import Project, ProjectStatus, UserContact
from dealdesk.commerce.projects.storage import (
    InMemoryProjectStorage,
    InMemoryUserDirectory,
    ProjectStorage,
    UserDirectory,
)

__all__ = [
    "Project",
    "ProjectStatus",
    "UserContact",
    "ProjectStorage",
    "UserDirectory",
    "InMemoryProjectStorage",
    "InMemoryUserDirectory",
]
