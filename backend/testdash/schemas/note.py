from pydantic import BaseModel
from datetime import datetime


class TestNoteData(BaseModel):
    test_id: str
    content: str
    created_at: datetime
    updated_at: datetime
