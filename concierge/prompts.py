"""System prompt assembly and reply shaping for the business concierge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .weather import WeatherReading


DEFAULT_BUSINESS_NAME = "The Cellar"

SYSTEM_PROMPT_TEMPLATE = """You are the assistant for {business_name}. Answer ONLY using the business information provided to you. If the business information does not cover the question, say you don't have it and offer to connect them to the business. Never guess or use other sources.

Allowed topics: hours, menu highlights, patio & pets, weather (use the current weather line when present), contact/directions. Keep replies ≤2 short sentences. If out of scope or missing data: brief apology + offer to connect."""

FALLBACK_REPLY = "I apologize, but I'm having trouble processing your request right now. Please try again later."
NO_REPLY_MESSAGE = "I apologize, but I couldn't generate a response at the moment."


@dataclass
class PromptContext:
    """Everything the system prompt is built from; rebuilt per request."""
    business_name: Optional[str]
    business_type: Optional[str]
    location: str
    weather: Optional[WeatherReading]
    knowledge_text: str


def build_system_prompt(context: PromptContext) -> str:
    """Preamble, then a weather line if known, then the knowledge block if any."""
    prompt = SYSTEM_PROMPT_TEMPLATE.format(business_name=context.business_name or DEFAULT_BUSINESS_NAME)
    if context.weather is not None:
        w = context.weather
        prompt += f"\n\nCurrent weather: {w.tempF}°F ({w.tempC}°C) in {w.location}."
    if context.knowledge_text:
        prompt += context.knowledge_text
    return prompt


def build_chat_messages(system_prompt: str, user_message: str) -> list[dict]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_message},
    ]


def _strip_markdown_fences(text: str) -> str:
    """Remove surrounding Markdown code fences from text."""
    t = text.strip()
    if not t.startswith("```"):
        return t
    lines = t.splitlines()
    if lines and lines[0].strip().startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def shape_reply(raw_text: str | None) -> str:
    """
    Clean up a completion for the chat bubble.

    Models occasionally wrap a short answer in a code fence despite the
    instructions; the fence is dropped so the client renders plain text.
    An empty completion becomes :data:`NO_REPLY_MESSAGE`.
    """
    text = _strip_markdown_fences(raw_text or "")
    return text or NO_REPLY_MESSAGE
