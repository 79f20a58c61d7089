"""Evidence store port: abstract interface for photo storage."""

from abc import ABC, abstractmethod


class EvidenceStorePort(ABC):
    """Abstract interface for evidence store adapters."""

    @abstractmethod
    def accepts(self, reference: str) -> bool:
        """Return True if ``reference`` names a stored evidence object."""
        ...
