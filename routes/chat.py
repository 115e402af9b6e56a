from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from config import load_config
from dependencies import get_tutor_client
from utils.tutor import ask_tutor

router = APIRouter()


class ChatRequest(BaseModel):
    question: Optional[str] = None
    context: Optional[str] = None
    difficulty: str = "medium"


@router.post("/openai-chat")
async def tutor_chat(body: ChatRequest, client=Depends(get_tutor_client)):
    if not body.question:
        raise HTTPException(status_code=400, detail="Question is required")
    tutor_cfg = load_config()["tutor"]
    return await ask_tutor(
        body.question,
        client=client,
        context=body.context,
        difficulty=body.difficulty,
        model=tutor_cfg["model"],
        practice_model=tutor_cfg["practice_model"],
    )
