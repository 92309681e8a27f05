from abc import ABC, abstractmethod

import requests


class BaseContentClient(ABC):
    @abstractmethod
    def make_session(self) -> requests.Session:
        """Create and configure an HTTP session with auth headers."""

    @abstractmethod
    def get_file(self, session) -> dict:
        """Fetch the catalog document metadata and inline content."""

    @abstractmethod
    def get_blob(self, session, sha) -> dict:
        """Fetch the full content of a revision too large to be inlined."""

    @abstractmethod
    def put_file(self, session, content, message, sha) -> dict:
        """Write new document bytes, conditional on the expected revision."""

    @abstractmethod
    def get_repository(self, session) -> dict:
        """Fetch repository metadata to verify connectivity and credentials."""
