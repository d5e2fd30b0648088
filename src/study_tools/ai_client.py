"""OpenAI-backed question drafting."""
import json
import logging
from typing import Optional

import httpx

from study_tools.errors import AIClientError
from study_tools.importer import collapse_whitespace, strip_html
from study_tools.models import QuestionDraft, QuestionType

logger = logging.getLogger(__name__)

TRUE_FALSE_OPTIONS = ("True", "False")
SYSTEM_PROMPT = "You write study quizzes for students. Reply with valid JSON only."


class QuizAIClient:
    """Interface for backends that draft questions from study material."""

    def can_generate(self) -> bool:
        raise NotImplementedError

    def generate(self, content: str, question_type: QuestionType, count: int) -> list[QuestionDraft]:
        raise NotImplementedError


class OpenAIQuizClient(QuizAIClient):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_content_length: int = 4000,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key or ""
        self.model = model
        self.temperature = temperature
        self.max_content_length = max_content_length
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.BaseTransport] = None) -> "OpenAIQuizClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_content_length=settings.openai_max_content_length,
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout,
            transport=transport,
        )

    def can_generate(self) -> bool:
        return bool(self.api_key)

    def generate(self, content: str, question_type: QuestionType, count: int) -> list[QuestionDraft]:
        if not self.can_generate():
            raise AIClientError("OpenAI client not configured")
        if count < 1:
            raise ValueError(f"count must be at least 1, got {count}")

        body = {
            "model": self.model,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": self.build_prompt(content, question_type, count)},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        with httpx.Client(base_url=self.base_url, headers=headers, timeout=self.timeout,
                          transport=self._transport) as client:
            try:
                response = client.post("/chat/completions", json=body)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.warning("OpenAI request failed: HTTP %s", e.response.status_code)
                raise AIClientError(f"OpenAI request failed with status {e.response.status_code}") from e
            try:
                payload = response.json()
            except ValueError as e:
                raise AIClientError("OpenAI response was not JSON") from e

        data = self._parse_json(self._extract_content(payload))
        raw_questions = data.get("questions") if isinstance(data, dict) else None
        if not isinstance(raw_questions, list):
            raise AIClientError("OpenAI response missing questions array")

        drafts = []
        for candidate in raw_questions[:count]:
            draft = self._normalize_question(candidate, question_type)
            if draft is not None:
                drafts.append(draft)
        return drafts

    def build_prompt(self, content: str, question_type: QuestionType, count: int) -> str:
        sanitized = collapse_whitespace(strip_html(content))[: self.max_content_length]
        if question_type == QuestionType.TRUE_FALSE:
            return (
                f"Write exactly {count} true/false questions about the content below. "
                'Use the JSON format: {"questions": [{"text": string, "options": ["True", "False"], '
                '"correctAnswer": 0 or 1, "explanation": string}]}. '
                f"Content: {sanitized}"
            )
        return (
            f"Write {count} multiple choice questions with four distinct options (A, B, C, D) "
            "about the content below. Use only the JSON format: "
            '{"questions": [{"text": string, "options": [string, string, string, string], '
            '"correctAnswer": number from 0 to 3, "explanation": string}]}. '
            f"Content: {sanitized}"
        )

    def _extract_content(self, payload) -> str:
        if not isinstance(payload, dict):
            raise AIClientError("OpenAI response did not contain textual content")
        output_text = payload.get("output_text")
        if isinstance(output_text, list) and output_text:
            return "\n".join(str(part) for part in output_text)

        choices = payload.get("choices") or []
        message = choices[0].get("message", {}) if choices and isinstance(choices[0], dict) else {}
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, list):
            return "".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            ).strip()
        if isinstance(content, str):
            return content
        raise AIClientError("OpenAI response did not contain textual content")

    def _parse_json(self, raw: str):
        try:
            return json.loads(raw)
        except ValueError as e:
            raise AIClientError(f"Failed to parse JSON from OpenAI response: {e}") from e

    def _normalize_question(self, candidate, question_type: QuestionType) -> Optional[QuestionDraft]:
        if not isinstance(candidate, dict):
            return None

        text = candidate.get("text")
        text = text.strip() if isinstance(text, str) else ""

        explanation = candidate.get("explanation")
        explanation = explanation.strip() if isinstance(explanation, str) else None
        if not explanation:
            explanation = None

        if question_type == QuestionType.TRUE_FALSE:
            options = TRUE_FALSE_OPTIONS
        else:
            raw_options = candidate.get("options")
            if not isinstance(raw_options, list):
                raw_options = []
            options = tuple(
                o.strip() for o in raw_options if isinstance(o, str) and o.strip()
            )[:4]

        if not text or not options:
            return None

        correct = candidate.get("correctAnswer")
        if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < len(options):
            correct = 0

        return QuestionDraft(text=text, options=options, correct_answer=correct, explanation=explanation)
