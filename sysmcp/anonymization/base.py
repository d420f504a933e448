from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from sysmcp.anonymization.models import AnonymizationMapping


class BaseAnonymizer(ABC):
    """Contract for record redactors."""

    @abstractmethod
    def redact(self, record: Mapping[str, Any] | None) -> dict[str, Any] | None:
        """Return a copy of *record* with PII replaced by stable tokens.

        Args:
            record: Field name -> value. Only string values are inspected.

        Returns:
            A new dict; the input is never mutated. ``None`` is returned as-is.

        Never raises: fields that cannot be processed pass through unchanged.
        """

    @abstractmethod
    def mapping(self) -> AnonymizationMapping:
        """Return the current original -> token mapping (read-only by contract)."""
