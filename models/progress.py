from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class ProgressRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    quizzes_completed: int = 0
    correct_answers: int = 0
    total_score: int = 0
    streak: int = 0
    best_streak: int = 0
    last_quiz_date: Optional[str] = None
    daily_quiz_count: int = 0
    themes: str = "default"
