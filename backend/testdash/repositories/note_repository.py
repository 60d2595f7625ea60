"""
Note Repository - one free-text note per logical test
"""
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert

from testdash.core.exceptions import ValidationError
from testdash.core.timestamps import utcnow
from testdash.models.test_note import TestNote
from testdash.repositories.base import BaseRepository
from testdash.schemas.note import TestNoteData

notes = TestNote.__table__

NOTE_MAX_LENGTH = 1000


class NoteRepository(BaseRepository):

    def __init__(self, db, max_length: int = NOTE_MAX_LENGTH):
        super().__init__(db)
        self.max_length = max_length

    async def save_note(self, test_id: str, content: str) -> None:
        """
        Create or replace the note of a test.

        Raises:
            ValidationError: if content is longer than ``max_length`` (nothing is written)
        """
        if len(content) > self.max_length:
            raise ValidationError(
                f"Note content exceeds maximum length of {self.max_length} characters",
                details={"length": len(content), "max_length": self.max_length},
            )

        now = utcnow()
        statement = insert(notes).values(
            test_id=test_id,
            content=content,
            created_at=now,
            updated_at=now,
        )
        await self.execute(
            statement.on_conflict_do_update(
                index_elements=[notes.c.test_id],
                set_={"content": statement.excluded.content, "updated_at": statement.excluded.updated_at},
            )
        )

    async def get_note(self, test_id: str) -> Optional[TestNoteData]:
        row = await self.query_one(select(notes).where(notes.c.test_id == test_id))
        if not row:
            return None
        return TestNoteData(**row)

    async def delete_note(self, test_id: str) -> int:
        return await self.execute(delete(notes).where(notes.c.test_id == test_id))
