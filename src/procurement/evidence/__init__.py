"""Evidence store abstraction: where handover photos live.

The order lifecycle stores only opaque photo references; the store vouches
that each reference points at an uploaded object.
"""

import os

_evidence_store_instance = None


def get_evidence_store():
    """Return the configured evidence store adapter (singleton).

    Uses FakeEvidenceStore by default. In production, configure via
    EVIDENCE_STORE_ADAPTER environment variable.
    """
    global _evidence_store_instance
    if _evidence_store_instance is None:
        adapter = os.environ.get("EVIDENCE_STORE_ADAPTER", "fake")
        if adapter == "fake":
            from procurement.evidence.fake_adapter import FakeEvidenceStore

            _evidence_store_instance = FakeEvidenceStore()
        else:
            raise ValueError(f"Unknown evidence store adapter: {adapter}")
    return _evidence_store_instance


def reset_evidence_store():
    """Reset the evidence store singleton (useful for testing)."""
    global _evidence_store_instance
    _evidence_store_instance = None
