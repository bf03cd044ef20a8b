"""Base collector interface for fleet data sources."""

from abc import ABC, abstractmethod
from typing import Any, Dict


class BaseCollector(ABC):
    """Abstract base class for local data sources.

    Collectors wrap one kind of input (coordination files, a command's
    output, a read-only database) behind a consistent interface so the
    HTTP layer can report on them uniformly.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short, lowercase identifier (e.g., 'agents', 'atlas')."""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for API output."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backing file, directory or database can be used."""
        pass

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "available": self.is_available(),
        }


class CollectorError(Exception):
    """Raised when a collector's backing source cannot be used at all."""

    def __init__(self, collector_name: str, message: str):
        self.collector_name = collector_name
        super().__init__(f"[{collector_name}] {message}")
