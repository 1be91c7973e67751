"""Base classes and protocols for LMS client implementations.

This module defines the common interface that LMS clients should implement,
so that the dashboard controller can work against any backend that can list
courses, course contents and assignments.
"""

from abc import ABC, abstractmethod


class LMSClient(ABC):
    """Abstract base class for LMS (Learning Management System) clients.

    Attributes:
        base_url: The base URL for the LMS platform

    Note on credentials:
        Clients are constructed with everything they need to authenticate.
        `authenticate()` only exchanges those credentials for a session token
        and reports whether that worked; it never prompts.
    """

    base_url: str

    @abstractmethod
    def authenticate(self) -> bool:
        """Authenticate to the LMS platform.

        Returns:
            True if authentication was successful, False otherwise.
        """
        ...

    @abstractmethod
    def fetch_courses(self) -> list:
        """Return the courses the authenticated user is enrolled in."""
        ...

    @abstractmethod
    def fetch_course_contents(self, course_id: int) -> list:
        """Return the ordered sections of a course."""
        ...

    @abstractmethod
    def fetch_upcoming_assignments(self, now: int | None = None) -> list:
        """Return assignments due at or after `now` (unix seconds)."""
        ...
