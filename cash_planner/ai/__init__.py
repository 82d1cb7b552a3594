import json
import logging
import os
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol, Union

from huggingface_hub import InferenceClient

from cash_planner.errors import ServiceError, ValidationError

logger = logging.getLogger(__name__)

_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
_OLLAMA_URL = "http://localhost:11434/api/chat"
_OPENAI_URL = "https://api.openai.com/v1/chat/completions"

DEFAULT_TIMEOUT = 60.0

# Constrains replies to either a clarifying question or a list of records
# carrying the required subset of the transaction wire shape.
SUGGESTION_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "question": {"type": "STRING"},
        "transactions": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "amount": {"type": "NUMBER"},
                    "type": {"type": "STRING", "enum": ["income", "expense"]},
                    "startDate": {"type": "STRING"},
                    "frequency": {"type": "STRING", "enum": ["none", "days", "weeks", "months"]},
                    "interval": {"type": "INTEGER"},
                },
                "required": ["name", "amount", "type", "startDate", "frequency"],
            },
        },
    },
}


class LLMProvider(Protocol):
    """A minimal protocol all concrete providers must implement."""

    def generate(self, messages: List[dict], system_prompt: str) -> str:
        """Return the raw JSON text the model replied with."""


# -----------------------------------------------------------------------------
# Reply types
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Question:
    text: str
    kind: str = "question"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "text": self.text}


@dataclass(frozen=True)
class TransactionSuggestions:
    items: List[dict] = field(default_factory=list)
    kind: str = "transactions"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "items": list(self.items)}


Suggestion = Union[Question, TransactionSuggestions]


# -----------------------------------------------------------------------------
# HTTP helper shared by the urllib based providers
# -----------------------------------------------------------------------------

def _post_json(url: str, payload: dict, headers: Dict[str, str], timeout: float, label: str) -> dict:
    data = json.dumps(payload).encode()
    logger.debug("%s ▶ POST %s", label, url)
    req = urllib.request.Request(url, data=data, method="POST")
    req.add_header("Content-Type", "application/json")
    for name, value in headers.items():
        req.add_header(name, value)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode()
    except urllib.error.HTTPError as exc:
        detail = exc.read().decode(errors="replace")
        logger.error("%s API response not OK: %s %s", label, exc.code, detail)
        raise ServiceError(f"{label} API error: {exc.code} - {detail}") from exc
    except (urllib.error.URLError, OSError) as exc:
        logger.error("%s API request failed: %s", label, exc)
        raise ServiceError(f"{label} API request failed: {exc}") from exc
    logger.debug("%s ◀ %s", label, raw)
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ServiceError(f"{label} API returned invalid JSON") from exc


# -----------------------------------------------------------------------------
# Providers
# -----------------------------------------------------------------------------

@dataclass
class GeminiProvider:
    """Google generative-language ``generateContent`` endpoint."""

    model: str
    api_key: str
    timeout: float = DEFAULT_TIMEOUT
    use_response_schema: bool = True
    url: str = _GEMINI_URL

    def generate(self, messages: List[dict], system_prompt: str) -> str:
        generation_config: Dict[str, Any] = {"responseMimeType": "application/json"}
        if self.use_response_schema:
            generation_config["responseSchema"] = SUGGESTION_SCHEMA
        payload = {
            "contents": [
                {
                    "role": "model" if m["role"] == "assistant" else "user",
                    "parts": [{"text": m["content"]}],
                }
                for m in messages
            ],
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "generationConfig": generation_config,
        }
        resp_data = _post_json(
            self.url.format(model=self.model),
            payload,
            {"x-goog-api-key": self.api_key},
            self.timeout,
            "Gemini",
        )
        try:
            parts = resp_data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise ServiceError(f"Unexpected Gemini response format: {resp_data}") from None
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()


@dataclass
class OpenAIProvider:
    model: str
    api_key: str
    timeout: float = DEFAULT_TIMEOUT

    def generate(self, messages: List[dict], system_prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}] + messages,
            "response_format": {"type": "json_object"},
        }
        resp_data = _post_json(
            _OPENAI_URL,
            payload,
            {"Authorization": f"Bearer {self.api_key}"},
            self.timeout,
            "OpenAI",
        )
        try:
            return resp_data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError):
            raise ServiceError(f"Unexpected OpenAI response format: {resp_data}") from None


@dataclass
class OllamaProvider:
    model: str
    url: str = _OLLAMA_URL
    timeout: float = DEFAULT_TIMEOUT

    def generate(self, messages: List[dict], system_prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}] + messages,
            "format": "json",
            "stream": False,
        }
        resp_data = _post_json(self.url, payload, {}, self.timeout, "Ollama")

        # Ollama /api/chat returns either {'message': str, 'done': bool}
        # or {'message': {'role': 'assistant', 'content': str, ...}, 'done': bool}
        msg = resp_data.get("message", "")
        if isinstance(msg, dict):
            msg = msg.get("content", "")
        if not isinstance(msg, str):
            raise ServiceError(f"Unexpected Ollama response format: {resp_data}")
        return msg.strip()


@dataclass
class HuggingFaceProvider:
    model: str
    token: str | None = None
    inference_provider: str = "auto"
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        self._client = InferenceClient(
            provider=self.inference_provider, api_key=self.token, timeout=self.timeout
        )

    def generate(self, messages: List[dict], system_prompt: str) -> str:
        try:
            out = self._client.chat_completion(
                messages=[{"role": "system", "content": system_prompt}] + messages,
                model=self.model,
            )
            content = out.choices[0].message.content
        except Exception as exc:
            raise ServiceError(f"Hugging Face inference failed: {exc}") from exc
        return (content or "").strip()


# -----------------------------------------------------------------------------
# Client and suggestion service
# -----------------------------------------------------------------------------

@dataclass
class LLMClient:
    """Simple client that delegates chat requests to an LLM provider."""
    provider: LLMProvider | None = None

    def __post_init__(self) -> None:
        if self.provider is None:
            self.provider = get_provider_from_env()

    def chat(self, messages: List[dict], system_prompt: str) -> str:
        return self.provider.generate(messages, system_prompt)


def normalize_history(history: Any) -> List[dict]:
    """Accept Gemini-style or chat-style history and return chat-style messages."""
    if not isinstance(history, list) or not history:
        raise ValidationError("chatHistory must be a non-empty list")
    messages = []
    for entry in history:
        if not isinstance(entry, Mapping):
            raise ValidationError("chatHistory entries must be objects")
        role = entry.get("role", "user")
        if "parts" in entry:
            parts = entry.get("parts") or []
            if not isinstance(parts, list):
                raise ValidationError("chatHistory parts must be a list")
            content = "".join(
                str(p.get("text", "")) for p in parts if isinstance(p, Mapping)
            )
        else:
            content = entry.get("content")
        if not isinstance(content, str):
            raise ValidationError("chatHistory entries need text content")
        messages.append(
            {
                "role": "assistant" if role in ("model", "assistant") else "user",
                "content": content,
            }
        )
    return messages


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_suggestion_reply(raw: str) -> Suggestion:
    """Turn the model's JSON reply into a :class:`Question` or suggestion list."""
    try:
        data = json.loads(_strip_code_fence(raw or ""))
    except ValueError as exc:
        raise ServiceError(f"Suggestion service returned non-JSON reply: {raw!r}") from exc

    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        if data.get("kind") == "question" or (
            "question" in data and not data.get("transactions")
        ):
            text = data.get("text", data.get("question"))
            if not isinstance(text, str) or not text.strip():
                raise ServiceError("Suggestion service returned an empty question")
            return Question(text=text.strip())
        items = data.get("items", data.get("transactions"))
    else:
        items = None

    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise ServiceError(f"Unexpected suggestion reply: {raw!r}")
    return TransactionSuggestions(items=items)


@dataclass
class SuggestionService:
    """Ask the model for planning suggestions given a conversation."""

    client: LLMClient | None = None

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = LLMClient()

    def suggest(self, history: Any, system_prompt: Any) -> Suggestion:
        if not isinstance(system_prompt, str) or not system_prompt.strip():
            raise ValidationError("systemPrompt is required")
        messages = normalize_history(history)
        raw = self.client.chat(messages, system_prompt)
        suggestion = parse_suggestion_reply(raw)
        logger.info("Suggestion service replied with %s", suggestion.kind)
        return suggestion


# -----------------------------------------------------------------------------
# Provider selection
# -----------------------------------------------------------------------------

def get_provider_from_env(config: dict | None = None) -> LLMProvider:
    llm_cfg = (config or {}).get("llm", {}) or {}
    provider = (
        os.environ.get("CASH_PLANNER_LLM_PROVIDER") or llm_cfg.get("provider") or "gemini"
    ).lower()
    model = os.environ.get("CASH_PLANNER_LLM_MODEL") or llm_cfg.get("model")
    timeout = float(llm_cfg.get("timeout_seconds", DEFAULT_TIMEOUT))

    if provider == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ServiceError("OPENAI_API_KEY not set")
        return OpenAIProvider(model=model or "gpt-4o-mini", api_key=api_key, timeout=timeout)

    if provider == "ollama":
        url = os.environ.get("OLLAMA_URL", _OLLAMA_URL)
        return OllamaProvider(model=model or "phi3:mini", url=url, timeout=timeout)

    if provider == "huggingface":
        token = os.environ.get("HF_API_TOKEN")
        return HuggingFaceProvider(model=model or "Qwen/Qwen3-32B", token=token, timeout=timeout)

    if provider != "gemini":
        raise ServiceError(f"Unsupported LLM provider '{provider}'")

    api_key = os.environ.get("GEMINI_API_KEY")
    if not api_key:
        raise ServiceError("GEMINI_API_KEY not set")
    return GeminiProvider(
        model=model or "gemini-2.5-flash",
        api_key=api_key,
        timeout=timeout,
        use_response_schema=bool(llm_cfg.get("response_schema", True)),
    )
