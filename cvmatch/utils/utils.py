import os
import json
import numpy as np
from dotenv import load_dotenv
import requests

from cvmatch.utils.exceptions import ExternalServiceError, retry_with_logging
from cvmatch.utils.logging_config import get_logger

load_dotenv()
logger = get_logger(__name__)

OLLAMA = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
LLM_MODEL = os.getenv("LLM_MODEL", "llama3.1:8b")
EMBED_MODEL = os.getenv("EMBED_MODEL", "nomic-embed-text")
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "120"))


def _ollama_post(endpoint: str, payload: dict, attempts: int) -> dict:
    """POST to the Ollama API with retries; transport failures become ExternalServiceError."""

    @retry_with_logging(max_attempts=attempts, backoff_factor=0.5, exceptions=(requests.RequestException,),
                        logger=logger)
    def _call():
        resp = requests.post(f"{OLLAMA}/api/{endpoint}", json=payload, timeout=OLLAMA_TIMEOUT)
        resp.raise_for_status()
        return resp.json()

    try:
        return _call()
    except requests.RequestException as e:
        status = e.response.status_code if e.response is not None else None
        raise ExternalServiceError(
            f"Ollama /api/{endpoint} failed: {e}", service_name="ollama", status_code=status, cause=e
        ) from e


def ollama_generate(prompt: str, model: str = None, temperature: float = 0.1) -> str:
    data = _ollama_post("generate", {
        "model": model or LLM_MODEL,
        "prompt": prompt,
        "format": "json",
        "options": {"temperature": temperature},
        "stream": False
    }, attempts=3)
    return data.get("response", "") or ""


def ollama_embed(text: str) -> np.ndarray:
    data = _ollama_post("embeddings", {"model": EMBED_MODEL, "prompt": text}, attempts=2)
    return np.array(data["embedding"], dtype=np.float32)


def safe_json(s: str, fallback):
    """Pull the outermost JSON object out of an LLM reply."""
    try:
        start = s.find("{")
        end = s.rfind("}")
        if start >= 0 and end >= 0:
            return json.loads(s[start:end + 1])
        return fallback
    except (ValueError, AttributeError):
        return fallback
