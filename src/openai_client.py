#!/usr/bin/env python3
"""OpenAI client construction for narration speech and the chat agent.

The public OpenAI API is the default target. Setting ``AZURE_OPENAI_ENDPOINT``
switches to an Azure OpenAI deployment, authenticated with an Entra token or
an API key depending on ``AZURE_OPENAI_AUTH_MODE``.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from azure.identity import DefaultAzureCredential, get_bearer_token_provider
from openai import AzureOpenAI, OpenAI

logger = logging.getLogger(__name__)

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"
DEFAULT_AZURE_API_VERSION = "2025-03-01-preview"
AUTH_MODES = ("auto", "token", "api-key")

OpenAIClient = Union[OpenAI, AzureOpenAI]


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, "").strip() or default)
    except ValueError:
        return default


def _retries_env(name: str, default: int) -> int:
    try:
        return max(0, int(os.getenv(name, "").strip() or default))
    except ValueError:
        return default


@dataclass
class OpenAISettings:
    api_key: str = ""
    azure_endpoint: str = ""
    azure_api_key: str = ""
    azure_api_version: str = DEFAULT_AZURE_API_VERSION
    auth_mode: str = "auto"
    managed_identity_client_id: str = ""
    timeout_seconds: float = 45.0
    max_retries: int = 0

    @classmethod
    def from_env(cls) -> "OpenAISettings":
        mode = (os.getenv("AZURE_OPENAI_AUTH_MODE", "") or "auto").strip().lower()
        if mode not in AUTH_MODES:
            raise ValueError(f"AZURE_OPENAI_AUTH_MODE must be one of {', '.join(AUTH_MODES)}")
        return cls(
            api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            azure_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT", "").strip(),
            azure_api_key=os.getenv("AZURE_OPENAI_API_KEY", "").strip(),
            azure_api_version=os.getenv("AZURE_OPENAI_API_VERSION", "").strip() or DEFAULT_AZURE_API_VERSION,
            auth_mode=mode,
            managed_identity_client_id=os.getenv("AZURE_OPENAI_MANAGED_IDENTITY_CLIENT_ID", "").strip(),
            timeout_seconds=_float_env("OPENAI_TIMEOUT_SECONDS", 45.0),
            max_retries=_retries_env("OPENAI_MAX_RETRIES", 0),
        )

    @property
    def uses_azure(self) -> bool:
        return bool(self.azure_endpoint)

    def tuning(self) -> Dict[str, Any]:
        return {"timeout": self.timeout_seconds, "max_retries": self.max_retries}


def client_tuning_kwargs() -> Dict[str, Any]:
    """Timeout and retry settings shared by every client this module builds."""
    return OpenAISettings.from_env().tuning()


def _credential(settings: OpenAISettings) -> DefaultAzureCredential:
    if settings.managed_identity_client_id:
        return DefaultAzureCredential(managed_identity_client_id=settings.managed_identity_client_id)
    return DefaultAzureCredential()


def _azure_client(settings: OpenAISettings, credential: Optional[DefaultAzureCredential]) -> AzureOpenAI:
    """Token auth when ``credential`` is given, API key auth otherwise."""
    auth: Dict[str, Any]
    if credential is not None:
        auth = {"azure_ad_token_provider": get_bearer_token_provider(credential, COGNITIVE_SERVICES_SCOPE)}
    else:
        auth = {"api_key": settings.azure_api_key}
    return AzureOpenAI(
        azure_endpoint=settings.azure_endpoint,
        api_version=settings.azure_api_version,
        **auth,
        **settings.tuning(),
    )


def _token_available(credential: DefaultAzureCredential) -> bool:
    try:
        credential.get_token(COGNITIVE_SERVICES_SCOPE)
    except Exception as exc:
        logger.info("Entra token unavailable (%s); trying API key", exc.__class__.__name__)
        return False
    return True


def init_openai_client(settings: Optional[OpenAISettings] = None) -> Tuple[OpenAIClient, str]:
    """Build a client and name the auth path it uses.

    Returns ``(client, "openai")`` for the public API, otherwise
    ``(client, "token")`` or ``(client, "api-key")`` for Azure. In ``auto``
    mode a token is tried first and the API key is the fallback.
    """
    settings = settings or OpenAISettings.from_env()

    if not settings.uses_azure:
        if not settings.api_key:
            raise ValueError("Missing OPENAI_API_KEY")
        return OpenAI(api_key=settings.api_key, **settings.tuning()), "openai"

    if settings.auth_mode == "api-key":
        if not settings.azure_api_key:
            raise ValueError("AZURE_OPENAI_AUTH_MODE=api-key requires AZURE_OPENAI_API_KEY")
        return _azure_client(settings, None), "api-key"

    credential = _credential(settings)
    if settings.auth_mode == "auto" and settings.azure_api_key and not _token_available(credential):
        return _azure_client(settings, None), "api-key"
    return _azure_client(settings, credential), "token"


_shared_client: Optional[OpenAIClient] = None
_shared_auth_mode = ""
_shared_lock = threading.Lock()


def get_shared_client() -> Tuple[OpenAIClient, str]:
    """Process-wide client, created on first use."""
    global _shared_client, _shared_auth_mode

    if _shared_client is None:
        with _shared_lock:
            if _shared_client is None:
                _shared_client, _shared_auth_mode = init_openai_client()
                logger.info("OpenAI client ready (auth=%s)", _shared_auth_mode)
    return _shared_client, _shared_auth_mode
