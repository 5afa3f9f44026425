#!/usr/bin/env python3
"""
Poppa Elf chat agent.

Answers questions about Santa's flight in character, calling the flight record
tools through chat-completions tool calling.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

from elf_tools import TOOL_DEFINITIONS, PoppaElfTools
from openai_client import OpenAIClient, get_shared_client
from shared_utils import env_int

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "gpt-4o-mini"
CHAT_ROLES = ("user", "assistant")

POPPA_ELF_PROMPT = """You are Poppa Elf, the oldest and wisest elf at the North Pole, helping people explore Santa's flight records.

Persona and voice
- Warm, playful, kind and reassuring, like a friendly grandfather.
- You speak from the world of Santa with gentle realism: protect the magic without false claims or promises.

Core principles
- Never guarantee gifts, outcomes or miracles, and never commit on Santa's behalf.
- Do not say whether Santa is real or not real. Respect every belief and age.
- Never claim that Santa or the elves watch people, read messages or hold personal data.

Wishes
- You have a famously terrible memory for wishes and say so playfully.
- Never claim to store or pass on a wish. Gently suggest telling Santa directly through the family's own tradition.

Behavior and feelings
- Never call anyone naughty. Praise kindness, honesty and helpfulness instead.
- Stay neutral on religion and never correct anyone's beliefs. Every family celebrates in its own way.
- Never diagnose or give professional advice. If someone mentions danger, fear or abuse, encourage them to talk to a trusted adult right now.
- With trolls or arguments, stay calm and redirect to kindness.

Flight records
- You can look up the recorded flight with your tools: stops by number, by place name, by region, by time of day, the nearest stop to any place, and flight statistics.
- Use the tools for any factual question about stops, times, weather, distances or speeds, and share the exact details they return in your playful voice.
- If asked where Santa is right now, outside the recorded flight, be coy: last you heard he was resting somewhere warm before the big night.
- Never predict the future or give real-time locations. That is top secret.

Always leave the user feeling seen, encouraged and delighted, without false certainty."""


class ChatRequestError(ValueError):
    """The chat request body is not usable."""


class ChatProviderError(RuntimeError):
    """The chat model call failed."""


def normalize_messages(raw: Any) -> List[Dict[str, str]]:
    """Keep user and assistant turns with text content; at least one user turn is required."""
    if not isinstance(raw, list):
        raise ChatRequestError("Invalid request: messages array required")
    messages: List[Dict[str, str]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if role in CHAT_ROLES and isinstance(content, str) and content.strip():
            messages.append({"role": role, "content": content})
    if not any(message["role"] == "user" for message in messages):
        raise ChatRequestError("No user message found")
    return messages


def _assistant_turn(message: Any) -> Dict[str, Any]:
    return {
        "role": "assistant",
        "content": message.content or "",
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.function.name, "arguments": call.function.arguments},
            }
            for call in message.tool_calls
        ],
    }


class PoppaElfChat:
    def __init__(self, client: Optional[OpenAIClient] = None, max_tool_rounds: Optional[int] = None):
        self._client = client
        self.model = os.getenv("OPENAI_CHAT_MODEL", DEFAULT_CHAT_MODEL).strip() or DEFAULT_CHAT_MODEL
        rounds = max_tool_rounds if max_tool_rounds is not None else env_int("CHAT_MAX_TOOL_ROUNDS", 5)
        self.max_tool_rounds = max(0, rounds)

    @property
    def client(self) -> OpenAIClient:
        if self._client is None:
            self._client, _ = get_shared_client()
        return self._client

    def _complete(self, conversation: List[Dict[str, Any]], allow_tools: bool) -> Any:
        kwargs: Dict[str, Any] = {"model": self.model, "messages": conversation}
        if allow_tools:
            kwargs["tools"] = TOOL_DEFINITIONS
        try:
            response = self.client.chat.completions.create(**kwargs)
            return response.choices[0].message
        except Exception as exc:
            raise ChatProviderError(f"Chat completion failed: {exc.__class__.__name__}") from exc

    def reply(self, messages: List[Dict[str, str]], tools: PoppaElfTools) -> str:
        """Poppa Elf's answer to the conversation so far.

        Tool calls are answered and sent back until the model replies in text.
        After ``max_tool_rounds`` rounds the model is asked once more with no
        tools offered; a further tool request then raises ``ChatProviderError``.
        """
        conversation: List[Dict[str, Any]] = [{"role": "system", "content": POPPA_ELF_PROMPT}]
        conversation.extend(messages)

        rounds = 0
        while True:
            allow_tools = rounds < self.max_tool_rounds
            message = self._complete(conversation, allow_tools=allow_tools)
            if not message.tool_calls:
                return (message.content or "").strip()
            if not allow_tools:
                raise ChatProviderError("Chat model requested tools after the tool budget was spent")

            rounds += 1
            conversation.append(_assistant_turn(message))
            for call in message.tool_calls:
                result = tools.call(call.function.name, call.function.arguments)
                conversation.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(result, ensure_ascii=True),
                })
            logger.info("Chat round %d answered %d tool calls", rounds, len(message.tool_calls))
