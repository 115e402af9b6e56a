from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import openai

from store.keys import format_timestamp

log = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert AI math tutor for children aged 6-16.
Explain concepts in simple, age-appropriate language and break problems into
clear steps. Be patient, positive and encouraging. Adapt explanations to the
difficulty level: {difficulty}.

Context: {context}"""

PRACTICE_PROMPT = (
    'Based on the question "{question}", create one simple practice problem for a '
    "{difficulty} level student. Just return the problem, no explanation."
)

FALLBACK_RESPONSE = """That's a great maths question! Let's work through it step by step:

1. Understand: what is the question asking?
2. Plan: which operation or idea do we need?
3. Solve: work through it one step at a time.
4. Check: does the answer make sense?

Would you like help with a specific part of this problem?"""
FALLBACK_PRACTICE = "Try solving: 2 + 3 × 4 = ?"


def build_client(api_key: Optional[str], timeout: float = 30) -> Optional[openai.AsyncOpenAI]:
    """An OpenAI client, or None when no API key is configured."""
    if not api_key:
        return None
    return openai.AsyncOpenAI(api_key=api_key, timeout=timeout)


async def _complete(client: Any, model: str, messages: list, **kwargs: Any) -> str:
    completion = await client.chat.completions.create(model=model, messages=messages, **kwargs)
    return (completion.choices[0].message.content or "").strip()


async def ask_tutor(
    question: str,
    *,
    client: Optional[Any],
    context: Optional[str] = None,
    difficulty: str = "medium",
    model: str = "gpt-4",
    practice_model: str = "gpt-3.5-turbo",
) -> dict:
    """Answer a tutoring question, falling back to a canned reply when the API is unavailable."""
    timestamp = format_timestamp(datetime.now(timezone.utc))
    if client is None:
        log.warning("No OpenAI API key configured; using fallback tutor response")
        return _fallback(timestamp)
    system = SYSTEM_PROMPT.format(
        difficulty=difficulty,
        context=context or "General math tutoring session",
    )
    try:
        response = await _complete(
            client,
            model,
            [{"role": "system", "content": system}, {"role": "user", "content": question}],
            max_tokens=800,
            temperature=0.7,
        )
        practice = await _complete(
            client,
            practice_model,
            [{"role": "user", "content": PRACTICE_PROMPT.format(question=question, difficulty=difficulty)}],
            max_tokens=100,
            temperature=0.8,
        )
    except openai.OpenAIError as exc:
        log.error("OpenAI call failed: %s. Falling back to canned response.", exc)
        return _fallback(timestamp)
    return {
        "success": True,
        "response": response,
        "practiceProblem": practice,
        "timestamp": timestamp,
    }


def _fallback(timestamp: str) -> dict:
    return {
        "success": True,
        "response": FALLBACK_RESPONSE,
        "practiceProblem": FALLBACK_PRACTICE,
        "fallback": True,
        "timestamp": timestamp,
    }
