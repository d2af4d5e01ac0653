"""
LLM Backends
============
Backend handles for the streaming client and the failover orchestrator.

Every provider is addressed through its OpenAI-compatible
/chat/completions endpoint, so a Backend is just a base URL, a model and
a key. Gemini is reached through Google's OpenAI-compatible surface.

Failover Order:
    get_primary_backend()  → PRIMARY_PROVIDER
    get_backup_backends()  → BACKUP_PROVIDERS, left to right, with the
                             primary and keyless providers dropped.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from fixloop.core.config import (
    BACKUP_PROVIDERS,
    GEMINI_API_KEY,
    GROQ_API_KEY,
    LLM_TIMEOUT_SECONDS,
    MODEL_OVERRIDES,
    OPENAI_API_KEY,
    OPENROUTER_API_KEY,
    PRIMARY_PROVIDER,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Backend Handle
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Backend:
    """Configuration for a single text-generation endpoint."""
    name: str
    model: str
    base_url: str
    api_key: str = ""
    timeout_seconds: float = LLM_TIMEOUT_SECONDS

    @property
    def chat_completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


# name → (base_url, default model, api key)
PROVIDER_DEFAULTS: dict[str, tuple[str, str, str]] = {
    "openai": ("https://api.openai.com/v1", "gpt-4o-mini", OPENAI_API_KEY or ""),
    "groq": ("https://api.groq.com/openai/v1", "llama-3.3-70b-versatile", GROQ_API_KEY or ""),
    "openrouter": ("https://openrouter.ai/api/v1", "stepfun/step-3.5-flash:free", OPENROUTER_API_KEY or ""),
    "gemini": (
        "https://generativelanguage.googleapis.com/v1beta/openai",
        "gemini-2.0-flash",
        GEMINI_API_KEY or "",
    ),
}


def build_backend(name: str, model: Optional[str] = None) -> Backend:
    """
    Build the Backend for a known provider.

    Raises
    ------
    ValueError
        If *name* is not a known provider.
    """
    try:
        base_url, default_model, api_key = PROVIDER_DEFAULTS[name]
    except KeyError:
        raise ValueError(
            f"Unknown provider '{name}'. Known providers: {', '.join(PROVIDER_DEFAULTS)}"
        ) from None
    return Backend(
        name=name,
        model=model or MODEL_OVERRIDES.get(name) or default_model,
        base_url=base_url,
        api_key=api_key,
    )


def get_primary_backend() -> Backend:
    return build_backend(PRIMARY_PROVIDER)


def get_backup_backends(
    names: Optional[List[str]] = None,
    primary_name: str = PRIMARY_PROVIDER,
) -> List[Backend]:
    """Backups in configured order; unknown, keyless or primary entries skipped."""
    backups: List[Backend] = []
    for name in names if names is not None else BACKUP_PROVIDERS:
        if name == primary_name:
            continue
        if name not in PROVIDER_DEFAULTS:
            logger.warning("Ignoring unknown backup provider '%s'", name)
            continue
        backend = build_backend(name)
        if not backend.api_key:
            logger.debug("Skipping backup provider %s: no API key", name)
            continue
        backups.append(backend)
    return backups
