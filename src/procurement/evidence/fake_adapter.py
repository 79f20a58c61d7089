"""Fake evidence store: accepts well-formed references unless told otherwise."""

from procurement.evidence.port import EvidenceStorePort


class FakeEvidenceStore(EvidenceStorePort):
    """Evidence store that checks references against an in-memory rule set."""

    def __init__(self):
        self.rejected: set[str] = set()
        self.checked: list[str] = []

    def reject(self, *references: str):
        """Make the store refuse the given references."""
        self.rejected.update(references)

    def accepts(self, reference: str) -> bool:
        self.checked.append(reference)
        if not reference or not reference.strip():
            return False
        return reference not in self.rejected

    def reset(self):
        self.rejected.clear()
        self.checked.clear()
