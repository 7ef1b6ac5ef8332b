"""
Project storage layer.

Read access to listings plus the featured-placement columns that the
placement engine writes. Featured updates are conditional so a cleanup
sweep can never clobber a placement that was just bought or extended.
"""

import copy
import logging
import threading
from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from dealdesk.commerce.projects.models import Project, UserContact

logger = logging.getLogger(__name__)

# Sentinel meaning "don't check the current featured_until"
ANY = object()


class ProjectStorage(Protocol):
    """Protocol for project persistence backends."""

    def get_project(self, project_id: str) -> Optional[Project]:
        """Get a project by ID."""
        ...

    def list_featured(self, now: datetime, limit: int = 10, offset: int = 0) -> Tuple[List[Project], int]:
        """List projects with an unexpired featured placement, soonest expiry last."""
        ...

    def count_featured_by_seller(self, seller_id: str, now: datetime) -> int:
        """Count a seller's currently featured projects."""
        ...

    def set_featured(
        self,
        project_id: str,
        featured_until: datetime,
        expected_until: object = ANY,
    ) -> Optional[Project]:
        """Set is_featured and featured_until.

        When expected_until is given, the write only happens if the stored
        featured_until still equals it. Returns None if the project is
        missing or the condition failed.
        """
        ...

    def clear_featured(self, project_id: str) -> Optional[Project]:
        """Remove featured status from one project."""
        ...

    def clear_expired_featured(self, now: datetime) -> int:
        """Clear flag and timestamp wherever featured_until <= now. Returns count."""
        ...

    def find_featured_expiring(self, start: datetime, end: datetime) -> List[Project]:
        """Active featured projects whose featured_until falls in [start, end]."""
        ...


class UserDirectory(Protocol):
    """Read-only lookup of user contact identity."""

    def get_contact(self, user_id: str) -> Optional[UserContact]:
        ...


class InMemoryProjectStorage:
    """In-memory project storage for testing and local development."""

    def __init__(self):
        self._projects: dict[str, Project] = {}
        self._lock = threading.Lock()

    def add_project(self, project: Project) -> str:
        """Seed a project (listing management is outside this library)."""
        with self._lock:
            self._projects[project.id] = copy.deepcopy(project)
        return project.id

    def get_project(self, project_id: str) -> Optional[Project]:
        project = self._projects.get(project_id)
        return copy.deepcopy(project) if project else None

    def list_featured(self, now: datetime, limit: int = 10, offset: int = 0) -> Tuple[List[Project], int]:
        featured = [p for p in self._projects.values() if p.is_featured_at(now)]
        featured.sort(key=lambda p: p.featured_until, reverse=True)
        page = featured[offset : offset + limit]
        return [copy.deepcopy(p) for p in page], len(featured)

    def count_featured_by_seller(self, seller_id: str, now: datetime) -> int:
        return sum(
            1 for p in self._projects.values() if p.seller_id == seller_id and p.is_featured_at(now)
        )

    def set_featured(
        self,
        project_id: str,
        featured_until: datetime,
        expected_until: object = ANY,
    ) -> Optional[Project]:
        with self._lock:
            project = self._projects.get(project_id)
            if project is None:
                return None
            if expected_until is not ANY and project.featured_until != expected_until:
                logger.warning(
                    "featured_until changed concurrently for project %s", project_id
                )
                return None
            project.is_featured = True
            project.featured_until = featured_until
            return copy.deepcopy(project)

    def clear_featured(self, project_id: str) -> Optional[Project]:
        with self._lock:
            project = self._projects.get(project_id)
            if project is None:
                return None
            project.is_featured = False
            project.featured_until = None
            return copy.deepcopy(project)

    def clear_expired_featured(self, now: datetime) -> int:
        # Predicate and write happen under one lock, like a single UPDATE ... WHERE
        cleared = 0
        with self._lock:
            for project in self._projects.values():
                if project.featured_until is not None and project.featured_until <= now:
                    project.is_featured = False
                    project.featured_until = None
                    cleared += 1
        return cleared

    def find_featured_expiring(self, start: datetime, end: datetime) -> List[Project]:
        expiring = [
            p
            for p in self._projects.values()
            if p.is_featured
            and p.is_active
            and p.featured_until is not None
            and start <= p.featured_until <= end
        ]
        expiring.sort(key=lambda p: p.featured_until)
        return [copy.deepcopy(p) for p in expiring]


class InMemoryUserDirectory:
    """In-memory user directory for testing."""

    def __init__(self):
        self._contacts: dict[str, UserContact] = {}

    def add_contact(self, contact: UserContact) -> None:
        self._contacts[contact.id] = contact

    def get_contact(self, user_id: str) -> Optional[UserContact]:
        return self._contacts.get(user_id)
