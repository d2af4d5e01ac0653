"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    PRIMARY_PROVIDER     — Provider the user picked for fixes (default: openai)
    BACKUP_PROVIDERS     — Comma-separated failover order (default: groq,openrouter)
    OPENAI_API_KEY       — OpenAI API key
    GROQ_API_KEY         — Groq API key
    OPENROUTER_API_KEY   — OpenRouter API key
    GEMINI_API_KEY       — Gemini API key (OpenAI-compatible endpoint)
    <PROVIDER>_MODEL     — Per-provider model override (e.g. GROQ_MODEL)
    TSC_WORKER_COMMAND   — Override for the diagnostics worker command line
    NODE_BINARY          — Node executable used to run the project's tsc
    LLM_TIMEOUT_SECONDS  — HTTP timeout for model requests (default: 60)
    LOG_DIR              — Directory for the dated log file (default: logs)

Worker Timeout Philosophy:
    No timeout is imposed on the diagnostics worker. A large project can
    legitimately take a long time to type-check, and a hang is not
    distinguishable from slow compilation. Callers that want a deadline
    wrap the call in asyncio.wait_for; the worker is still torn down.

Failover Order:
    BACKUP_PROVIDERS is tried strictly left to right after the primary
    fails to start a stream. Providers without an API key are skipped.
"""
import os
from dotenv import load_dotenv

load_dotenv()

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")

PRIMARY_PROVIDER = os.getenv("PRIMARY_PROVIDER", "openai").strip().lower()
BACKUP_PROVIDERS: list[str] = [
    name.strip().lower()
    for name in os.getenv("BACKUP_PROVIDERS", "groq,openrouter").split(",")
    if name.strip()
]

# Model overrides per provider (defaults live in fixloop.llm.backends)
MODEL_OVERRIDES: dict[str, str] = {
    "openai":     os.getenv("OPENAI_MODEL", ""),
    "groq":       os.getenv("GROQ_MODEL", ""),
    "openrouter": os.getenv("OPENROUTER_MODEL", ""),
    "gemini":     os.getenv("GEMINI_MODEL", ""),
}

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", 60))

# Diagnostics worker
TSC_WORKER_COMMAND = os.getenv("TSC_WORKER_COMMAND", "")
NODE_BINARY = os.getenv("NODE_BINARY", "node")

# Logging
LOG_DIR = os.getenv("LOG_DIR", "logs")
