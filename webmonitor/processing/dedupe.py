"""
Content-hash deduplication against the record store.

The digest covers the raw body text only. Two articles with byte-identical
bodies are the same article even when their titles or URLs differ.
"""

from dataclasses import dataclass

from ..logging import get_logger
from ..storage.base import MonitorStore
from ..utils import generate_content_hash

logger = get_logger(__name__)


@dataclass(frozen=True)
class DedupResult:
    """Outcome of a dedup lookup."""
    is_new: bool
    content_hash: str
    existing_id: str | None = None


class DeduplicationGate:
    """Rejects bodies whose digest is already stored."""

    def __init__(self, store: MonitorStore, algorithm: str = "md5"):
        self.store = store
        self.algorithm = algorithm

    def compute_hash(self, content: str) -> str:
        """Digest of the body text exactly as extracted."""
        return generate_content_hash(content, self.algorithm)

    async def check(self, content: str) -> DedupResult:
        """Look the body's digest up in the store.

        Args:
            content: Extracted body text

        Returns:
            DedupResult with is_new False when a record already has the digest
        """
        content_hash = self.compute_hash(content)
        existing = await self.store.find_record_by_hash(content_hash)

        if existing is not None:
            logger.debug("duplicate_content", content_hash=content_hash, existing_id=existing.id)
            return DedupResult(is_new=False, content_hash=content_hash, existing_id=existing.id)

        return DedupResult(is_new=True, content_hash=content_hash)
