"""Ollama LLM Client for Local Models"""

import os
import json
import http.client
import socket
import urllib.request
import urllib.error

import structlog

from commitsmith.llm.base import GenerationOptions, LLMClient, LLMError

log = structlog.get_logger(__name__)


class OllamaClient(LLMClient):
    """Ollama client for local models. Requires: ollama serve"""

    DEFAULT_MODEL = "mistral:7b"
    DEFAULT_HOST = "http://localhost:11434"
    DEFAULT_TIMEOUT = 300  # 5 minutes for CPU inference

    def __init__(self, model: str | None = None, host: str | None = None):
        self.model = model or self.DEFAULT_MODEL
        self.host = host or os.environ.get("OLLAMA_HOST", self.DEFAULT_HOST)
        self.timeout = int(os.environ.get("COMMITSMITH_TIMEOUT", self.DEFAULT_TIMEOUT))
        self._verify_connection()

    @property
    def name(self) -> str:
        return f"Ollama ({self.model})"

    def _verify_connection(self) -> None:
        """Check if Ollama is running and accessible."""
        if not self.is_available():
            raise LLMError("Ollama not running. Start with: ollama serve")

    def is_available(self) -> bool:
        try:
            req = urllib.request.Request(f"{self.host}/api/tags")
            with urllib.request.urlopen(req, timeout=5):
                return True
        except (urllib.error.URLError, OSError):
            return False

    def is_model_loaded(self) -> bool:
        """Check if the model is currently loaded in memory."""
        try:
            req = urllib.request.Request(f"{self.host}/api/ps")
            with urllib.request.urlopen(req, timeout=5) as response:
                data = json.loads(response.read().decode('utf-8'))
                loaded_models = [m.get('name', '') for m in data.get('models', [])]
                return any(self.model in m or m in self.model for m in loaded_models)
        except (urllib.error.URLError, json.JSONDecodeError):
            return False

    def warmup(self) -> bool:
        """Pre-load the model with a tiny request. Returns True when loaded."""
        if self.is_model_loaded():
            return True

        payload = {
            "model": self.model,
            "prompt": "hi",
            "stream": False,
            "options": {"num_predict": 1},
            "keep_alive": "10m",
        }

        try:
            self._post("/api/generate", payload, self.timeout)
        except (urllib.error.URLError, OSError) as e:
            log.warning("ollama_warmup_failed", model=self.model, error=str(e))
            return False
        return True

    def _post(self, path: str, payload: dict, timeout: float) -> dict:
        data = json.dumps(payload).encode('utf-8')
        req = urllib.request.Request(f"{self.host}{path}", data=data, headers={"Content-Type": "application/json"})
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return json.loads(response.read().decode('utf-8'))

    def generate(self, system_prompt: str, user_prompt: str, options: GenerationOptions | None = None) -> str:
        """Call Ollama's generate API."""
        options = options or GenerationOptions()
        timeout = options.timeout or self.timeout
        payload = {
            "model": self.model,
            "prompt": user_prompt,
            "system": system_prompt,
            "stream": False,
            "keep_alive": "10m",
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        if options.format == "json":
            payload["format"] = "json"

        try:
            result = self._post("/api/generate", payload, timeout)
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise LLMError(f"Model '{self.model}' not found. Run: ollama pull {self.model}")
            raise LLMError(f"Ollama error ({e.code}): {e.reason}")
        except urllib.error.URLError as e:
            if isinstance(e.reason, socket.timeout):
                raise LLMError(f"Request timed out after {timeout}s. Try:\n  - Pre-load model: commitsmith --warmup\n  - Increase timeout: set COMMITSMITH_TIMEOUT=600")
            if "Connection refused" in str(e):
                raise LLMError("Ollama not running. Start with: ollama serve")
            raise LLMError(f"Ollama request failed: {e}")
        except socket.timeout:
            raise LLMError(f"Request timed out after {timeout}s. Try:\n  - Pre-load model: commitsmith --warmup\n  - Increase timeout: set COMMITSMITH_TIMEOUT=600")
        except json.JSONDecodeError:
            raise LLMError("Invalid response from Ollama. Try a different model or simpler change.")
        except http.client.HTTPException as e:
            raise LLMError(f"Incomplete response from Ollama: {e}. The model may have run out of memory.")
        except OSError as e:
            raise LLMError(f"Connection to Ollama lost: {e}. Check that 'ollama serve' is still running.")

        content = result.get("response", "").strip()
        log.debug("ollama_response", model=self.model, eval_count=result.get("eval_count", 0))
        if not content:
            raise LLMError("Ollama returned an empty response")
        return content
