#!/usr/bin/env python3
"""
Narration speech synthesis for Poppa Elf.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from openai_client import OpenAIClient, get_shared_client

logger = logging.getLogger(__name__)

DEFAULT_TTS_MODEL = "gpt-4o-mini-tts"
DEFAULT_TTS_VOICE = "ballad"

VOICE_INSTRUCTIONS = """You are speaking as Poppa Elf, the oldest and wisest elf at the North Pole. Your voice performance should sound like:
- A warm, grandfatherly elf, gentle and whimsical
- Older male, soft-edged, slightly raspy, always kind
- Speaking with measured, unhurried pacing, savoring words
- A tone that feels comforting, curious, and delighted by magic
- Emotional cadence that lifts slightly at the end of sentences, as if full of wonder
- Occasional small, sincere chuckles, quiet and breathy, never cartoonish
- Accent is light and natural (North American is fine), never theatrical or silly
- No booming baritone, no squeaky elf voice, no sarcasm or sharpness

Your delivery should feel like a kind, gentle elf grandfather sharing stories, making listeners feel safe, amused, and welcomed into a magical world."""


class SpeechProviderError(RuntimeError):
    """The speech provider call failed."""


class SpeechSynthesizer:
    def __init__(self, client: Optional[OpenAIClient] = None):
        self._client = client
        self.model = os.getenv("OPENAI_TTS_MODEL", DEFAULT_TTS_MODEL).strip() or DEFAULT_TTS_MODEL
        self.voice = os.getenv("OPENAI_TTS_VOICE", DEFAULT_TTS_VOICE).strip() or DEFAULT_TTS_VOICE

    @property
    def client(self) -> OpenAIClient:
        if self._client is None:
            self._client, _ = get_shared_client()
        return self._client

    def synthesize(self, text: str) -> bytes:
        """Return MPEG audio for ``text``; any provider failure raises ``SpeechProviderError``."""
        try:
            response = self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
                instructions=VOICE_INSTRUCTIONS,
                response_format="mp3",
            )
            audio = response.content
        except Exception as exc:
            raise SpeechProviderError(f"Speech synthesis failed: {exc.__class__.__name__}") from exc
        logger.info("Synthesized %d chars of narration into %d bytes", len(text), len(audio))
        return audio
