"""
Classroom AI Client
Quiz and quick-activity generation over AWS Bedrock (Converse API) or a local
Ollama instance. Every operation resolves to a Result; nothing raises past
ClassroomAI.
"""

import base64
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, TypeVar

import boto3
import ollama
from botocore.config import Config
from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import (
    ACTIVITY_PROMPT_TEMPLATE,
    ACTIVITY_SYSTEM_PROMPT,
    AI_CATEGORY_FLAGS,
    AI_MAX_TOKENS,
    BEDROCK_MODEL_ID,
    BEDROCK_REGION,
    ERROR_MESSAGES,
    OLLAMA_HOST,
    OLLAMA_MODEL,
    QUIZ_IMAGE_PROMPT,
    QUIZ_QUESTION_COUNT,
    QUIZ_SYSTEM_PROMPT,
    QUIZ_TOPIC_PROMPT,
    RESPONSE_LANGUAGE,
    TIMEOUTS,
)
from .models import AISettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AIServiceError(RuntimeError):
    """Raised by a backend when the model call itself fails."""


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "Result[T]":
        return cls(ok=False, error=error)


@dataclass
class ImagePayload:
    """Base64-encoded image attached to a request."""
    data: str
    mime_type: str = "image/jpeg"

    @property
    def format(self) -> str:
        return self.mime_type.split("/")[-1].replace("jpg", "jpeg")

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data)


@dataclass
class AIRequest:
    prompt: str
    image: Optional[ImagePayload] = None
    model_id: Optional[str] = None
    temperature: float = 0.7
    system_instruction: str = ""
    json_mode: bool = False
    max_tokens: int = AI_MAX_TOKENS


# ── Response schemas ─────────────────────────────────────────────────────────

class QuizQuestion(BaseModel):
    question: str
    options: List[str] = Field(min_length=2)
    answer: str
    explanation: str = ""

    @field_validator("question", "answer")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class ActivitySuggestion(BaseModel):
    title: str
    description: str = ""
    steps: List[str] = Field(default_factory=list)
    duration_minutes: int = 5


# ── JSON extraction ──────────────────────────────────────────────────────────

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_OPEN_FENCE_RE = re.compile(r"^```(?:json)?\s*")
# Inside a string, a comma followed by `"key":` means the string was never closed
_KEY_AHEAD_RE = re.compile(r',\s*"[^"\\]*"\s*:')
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def strip_code_fences(raw: str) -> str:
    """Return the body of a ```json fence if present, else the trimmed text."""
    fence_match = _FENCE_RE.search(raw)
    if fence_match:
        return fence_match.group(1).strip()
    # A truncated reply can open a fence and never close it
    return _OPEN_FENCE_RE.sub("", raw.strip())


def repair_json(text: str) -> str:
    """
    Best-effort repair of truncated or slightly malformed JSON.

    Closes an unterminated string, drops trailing commas, completes a dangling
    key with null, then appends whatever brackets/braces are still open.
    """
    out = []
    closers = []
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ch == "," and _KEY_AHEAD_RE.match(text, i):
                out.append('"')
                in_string = False
        else:
            if ch == '"':
                in_string = True
            elif ch == "{":
                closers.append("}")
            elif ch == "[":
                closers.append("]")
            elif ch in "}]" and closers and closers[-1] == ch:
                closers.pop()
        out.append(ch)

    if in_string:
        if escaped:
            out.pop()
        out.append('"')

    repaired = "".join(out).rstrip()
    while repaired.endswith(","):
        repaired = repaired[:-1].rstrip()
    if repaired.endswith(":"):
        repaired += " null"

    repaired += "".join(reversed(closers))
    return _TRAILING_COMMA_RE.sub(r"\1", repaired)


def parse_json_response(raw: Optional[str]) -> Any:
    """
    Robustly extract and parse JSON from a model response.
    Strategy:
      1. Strip a ```json ... ``` fence if there is one.
      2. Drop any prose before the first '{' or '['.
      3. Parse; on failure repair and parse again.
    Returns None when nothing usable can be extracted.
    """
    if not raw or not raw.strip():
        return None

    text = strip_code_fences(raw)
    starts = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    if starts:
        text = text[min(starts):]

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    try:
        return json.loads(repair_json(text))
    except json.JSONDecodeError as exc:
        logger.warning("Unrecoverable JSON from model: %s | preview: %r", exc, text[:200])
        return None


# ── Backends ─────────────────────────────────────────────────────────────────

class BedrockBackend:
    """Bedrock Converse API; model-agnostic (Nova, Claude, Titan...)."""

    def __init__(self, region: str = BEDROCK_REGION, model_id: str = BEDROCK_MODEL_ID,
                 timeout: int = TIMEOUTS["ai_generation"], client=None):
        self.region = region
        self.model_id = model_id
        self.client = client or boto3.client(
            "bedrock-runtime",
            region_name=region,
            config=Config(read_timeout=timeout, connect_timeout=10, retries={"max_attempts": 2}),
        )

    def complete(self, request: AIRequest) -> str:
        content = []
        if request.image is not None:
            content.append({
                "image": {
                    "format": request.image.format,
                    "source": {"bytes": request.image.raw_bytes()},
                }
            })
        content.append({"text": request.prompt})

        kwargs = {
            "modelId": request.model_id or self.model_id,
            "messages": [{"role": "user", "content": content}],
            "inferenceConfig": {"maxTokens": request.max_tokens, "temperature": request.temperature},
        }
        if request.system_instruction:
            kwargs["system"] = [{"text": request.system_instruction}]

        try:
            response = self.client.converse(**kwargs)
            return response["output"]["message"]["content"][0]["text"].strip()
        except Exception as exc:
            raise AIServiceError(f"Bedrock API error: {exc}") from exc


class OllamaBackend:
    """Local Ollama chat endpoint; always serves its locally pulled model."""

    def __init__(self, host: str = OLLAMA_HOST, model: str = OLLAMA_MODEL,
                 timeout: int = TIMEOUTS["ai_generation"], client=None):
        self.host = host
        self.model = model
        self.client = client or ollama.Client(host=host, timeout=timeout)

    def complete(self, request: AIRequest) -> str:
        messages = []
        if request.system_instruction:
            messages.append({'role': 'system', 'content': request.system_instruction})

        user_message = {'role': 'user', 'content': request.prompt}
        if request.image is not None:
            user_message['images'] = [request.image.data]
        messages.append(user_message)

        kwargs = {
            'model': self.model,
            'messages': messages,
            'options': {'temperature': request.temperature, 'num_predict': request.max_tokens},
        }
        if request.json_mode:
            kwargs['format'] = 'json'

        try:
            response = self.client.chat(**kwargs)
            return response['message']['content'].strip()
        except Exception as exc:
            raise AIServiceError(f"Cannot reach Ollama at {self.host}: {exc}") from exc


def build_backend(config):
    """Create the backend named by AppConfig.ai_backend."""
    if config.ai_backend == "ollama":
        return OllamaBackend(host=config.ollama_host, model=config.ollama_model,
                             timeout=config.ai_timeout)
    return BedrockBackend(region=config.bedrock_region, model_id=config.bedrock_model_id,
                          timeout=config.ai_timeout)


# ── High-level client ────────────────────────────────────────────────────────

class ClassroomAI:
    """Feature-flag aware wrapper that turns backend calls into Results."""

    def __init__(self, backend, settings: Optional[AISettings] = None,
                 language: str = RESPONSE_LANGUAGE):
        self.backend = backend
        self.settings = settings or AISettings()
        self.language = language

    def is_enabled(self, category: str) -> bool:
        flag = AI_CATEGORY_FLAGS.get(category)
        return flag is None or bool(getattr(self.settings, flag, False))

    def _system(self, base: str) -> str:
        extra = self.settings.system_instruction.strip()
        return f"{base}\n\n{extra}" if extra else base

    def complete_json(self, prompt: str, image: Optional[ImagePayload] = None,
                      system_instruction: str = "") -> Result[Any]:
        """Success carries the parsed JSON, or None when the reply was unusable."""
        request = AIRequest(
            prompt=prompt,
            image=image,
            model_id=self.settings.model_id,
            temperature=self.settings.temperature,
            system_instruction=system_instruction,
            json_mode=True,
        )
        try:
            raw = self.backend.complete(request)
        except AIServiceError as exc:
            logger.error("AI JSON request failed: %s", exc)
            return Result.failure(str(exc))
        return Result.success(parse_json_response(raw))

    def generate_quiz(self, topic: str = "", image: Optional[ImagePayload] = None,
                      count: int = QUIZ_QUESTION_COUNT) -> Result[List[QuizQuestion]]:
        """
        Generate multiple-choice questions about a topic or a slide image.

        Returns:
            success([...]) with the validated questions; an unusable reply
            yields success([]). failure(message) when the feature is disabled
            or the backend call fails.
        """
        if not self.is_enabled("quiz"):
            return Result.failure(ERROR_MESSAGES["feature_disabled"])

        if image is not None:
            prompt = QUIZ_IMAGE_PROMPT.format(count=count, language=self.language)
        else:
            topic = (topic or "").strip()
            if not topic:
                return Result.failure(ERROR_MESSAGES["quiz_failed"])
            prompt = QUIZ_TOPIC_PROMPT.format(count=count, topic=topic, language=self.language)

        result = self.complete_json(prompt, image=image,
                                    system_instruction=self._system(QUIZ_SYSTEM_PROMPT))
        if not result.ok:
            return Result.failure(ERROR_MESSAGES["quiz_failed"])
        return Result.success(_validate_questions(result.value))

    def suggest_activity(self, class_name: str, present_count: int, topic: str = "",
                         max_minutes: int = 5) -> Result[ActivitySuggestion]:
        if not self.is_enabled("activity"):
            return Result.failure(ERROR_MESSAGES["feature_disabled"])

        prompt = ACTIVITY_PROMPT_TEMPLATE.format(
            class_name=class_name or "-",
            present_count=present_count,
            topic=topic or "-",
            max_minutes=max_minutes,
            language=self.language,
        )
        result = self.complete_json(prompt, system_instruction=self._system(ACTIVITY_SYSTEM_PROMPT))
        if not result.ok or not isinstance(result.value, dict):
            return Result.failure(ERROR_MESSAGES["activity_failed"])

        try:
            return Result.success(ActivitySuggestion.model_validate(result.value))
        except ValidationError as exc:
            logger.warning("Activity suggestion failed validation: %s", exc)
            return Result.failure(ERROR_MESSAGES["activity_failed"])


def _validate_questions(data: Any) -> List[QuizQuestion]:
    """Keep every well-formed question; the model may wrap the list in an object."""
    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        return []

    questions = []
    for item in data:
        try:
            questions.append(QuizQuestion.model_validate(item))
        except ValidationError as exc:
            logger.debug("Dropping malformed quiz question: %s", exc)
    return questions
