"""
Note Service
"""
import logging
from typing import Optional

from testdash.core.exceptions import DashboardError, ValidationError
from testdash.repositories.note_repository import NoteRepository
from testdash.schemas.note import TestNoteData

logger = logging.getLogger(__name__)


class NoteService:

    def __init__(self, note_repository: NoteRepository):
        self.note_repository = note_repository

    async def save_note(self, test_id: str, content: str) -> Optional[TestNoteData]:
        """Trim and store a note. Empty notes are rejected; use delete_note instead."""
        trimmed = content.strip()
        if not trimmed:
            raise ValidationError("Note content cannot be empty")

        try:
            await self.note_repository.save_note(test_id, trimmed)
        except DashboardError as e:
            logger.error(f"Failed to save note for test {test_id}: {e}")
            raise

        logger.info(f"Note saved for test {test_id}")
        return await self.note_repository.get_note(test_id)

    async def get_note(self, test_id: str) -> Optional[TestNoteData]:
        return await self.note_repository.get_note(test_id)

    async def delete_note(self, test_id: str) -> bool:
        deleted = await self.note_repository.delete_note(test_id)
        if deleted:
            logger.info(f"Note deleted for test {test_id}")
        return deleted > 0
