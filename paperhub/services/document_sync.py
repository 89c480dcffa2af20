"""Idempotent seeding of collaborative documents."""

import logging

from paperhub.services.etherpad import EtherpadNotFoundError, EtherpadService

logger = logging.getLogger(__name__)


class DocumentSync:
    """Seeds Etherpad documents with resolved file content.

    A document is seeded only when it is first created. Once it exists, the
    pad's text is authoritative and later calls never overwrite it.
    """

    def __init__(self, etherpad: EtherpadService):
        self._etherpad = etherpad

    async def ensure(self, document_id: str, text: str) -> bool:
        """Create and seed a document unless it already exists.

        Creation and seeding are two sequential calls; an interruption
        between them leaves an empty document that is not repaired.

        Args:
            document_id: Pad id.
            text: Seed text, used only if the pad is created by this call.

        Returns:
            True if the document was created, False if it already existed.

        Raises:
            EtherpadAPIError: If the existence check fails for a reason other than a
                missing pad, or creation/seeding fails.
        """
        try:
            await self._etherpad.get_last_edited(document_id)
        except EtherpadNotFoundError:
            await self._etherpad.create_pad(document_id)
            await self._etherpad.set_text(document_id, text)
            logger.info(f"Seeded document {document_id} ({len(text)} chars)")
            return True

        logger.debug(f"Document {document_id} already exists, leaving its text untouched")
        return False

    async def read(self, document_id: str) -> str:
        """Get the current text of a document."""
        return await self._etherpad.get_text(document_id)
