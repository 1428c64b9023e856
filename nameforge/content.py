"""
AI content analysis: ask a local vision model for a short descriptive phrase
and turn it into a filename-safe token.
"""

import base64
import re
import time
from enum import Enum
from typing import List, Optional, Protocol

import requests

from .exceptions import ContentAnalysisError
from .logging_config import get_logger
from .metadata import SUPPORTED_EXTENSIONS

logger = get_logger(__name__)

OLLAMA_URL = "http://localhost:11434/api/generate"
OLLAMA_TIMEOUT = 30  # seconds; the first request may wait for the model to load
OLLAMA_ATTEMPTS = 2
OLLAMA_RETRY_DELAY = 2.0

PROMPT_TEMPLATE = """Generate filename:

Use {case}
Max {max_chars} characters
{language} only
No file extension
No special chars
Only key elements
One word if possible
Noun-verb format

Respond ONLY with filename."""

# A bare "Filename:" line, or a "Name:" style prefix before the answer
LABEL_PATTERN = re.compile(r'^(?:[\w ]+:\s*$|(?:file\s*name|name|title)\s*:\s*)', re.IGNORECASE)


class CaseStyle(Enum):
    LOWERCASE = "lowercase"
    UPPERCASE = "uppercase"
    SNAKE_CASE = "snake_case"
    CAMEL_CASE = "camelCase"
    PASCAL_CASE = "PascalCase"
    KEBAB_CASE = "kebab-case"

    @classmethod
    def parse(cls, value: str) -> "CaseStyle":
        """Accept "snake_case", "snakecase", "Snake-Case" and friends."""
        wanted = re.sub(r'[^a-z]', '', value.lower())
        for style in cls:
            if re.sub(r'[^a-z]', '', style.value.lower()) == wanted:
                return style
        raise ValueError(f"Unknown case style: {value}")


class ContentClient(Protocol):
    """Anything that can describe an image in a few words."""

    def analyze(self, image_bytes: bytes, model: str, prompt: str) -> Optional[str]:
        ...


class OllamaClient:
    """Minimal client for the Ollama /api/generate endpoint."""

    def __init__(self, url: str = OLLAMA_URL, timeout: float = OLLAMA_TIMEOUT,
                 attempts: int = OLLAMA_ATTEMPTS, retry_delay: float = OLLAMA_RETRY_DELAY,
                 session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.session = session or requests.Session()

    def analyze(self, image_bytes: bytes, model: str, prompt: str) -> Optional[str]:
        payload = {
            "model": model,
            "prompt": prompt,
            "images": [base64.b64encode(image_bytes).decode("utf-8")],
            "stream": False,
        }

        logger.info(f"Analyzing image content with AI model: {model}...")
        last_error: Optional[Exception] = None
        for attempt in range(1, self.attempts + 1):
            try:
                response = self.session.post(self.url, json=payload, timeout=self.timeout)
            except requests.exceptions.ConnectionError as e:
                # The server may still be loading the model
                last_error = e
                if attempt < self.attempts:
                    logger.warning("AI request failed, retrying (model might be loading)")
                    time.sleep(self.retry_delay)
                continue
            except requests.exceptions.RequestException as e:
                raise ContentAnalysisError(f"Request to Ollama failed: {e}") from e

            try:
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.HTTPError as e:
                raise ContentAnalysisError(
                    f"Ollama API error status {response.status_code}: {response.text}"
                ) from e
            except ValueError as e:
                raise ContentAnalysisError(f"Failed to parse Ollama response: {e}") from e

            if not isinstance(data, dict) or not isinstance(data.get("response"), str):
                raise ContentAnalysisError(f"Unexpected Ollama response: {data!r}")
            return data["response"]

        raise ContentAnalysisError(
            f"Failed to reach Ollama after {self.attempts} attempts: {last_error}"
        )


def first_answer_line(phrase: str) -> str:
    """Return the first line of a reply that is not just a "Filename:" label."""
    for line in phrase.splitlines():
        line = LABEL_PATTERN.sub('', line.strip()).strip()
        if line:
            return line
    return ""


def split_words(phrase: str) -> List[str]:
    """Break a phrase into word tokens, dropping punctuation and extensions."""
    phrase = first_answer_line(phrase)
    stem, dot, extension = phrase.rpartition('.')
    if dot and f".{extension.lower()}" in SUPPORTED_EXTENSIONS:
        phrase = stem
    # cozyLivingRoom -> cozy Living Room
    phrase = re.sub(r'(?<=[a-z0-9])(?=[A-Z])', ' ', phrase)
    return re.findall(r'[^\W_]+', phrase)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def apply_case(words: List[str], style: CaseStyle) -> str:
    if not words:
        return ""
    if style is CaseStyle.UPPERCASE:
        return " ".join(w.upper() for w in words)
    if style is CaseStyle.SNAKE_CASE:
        return "_".join(w.lower() for w in words)
    if style is CaseStyle.KEBAB_CASE:
        return "-".join(w.lower() for w in words)
    if style is CaseStyle.CAMEL_CASE:
        return words[0].lower() + "".join(_capitalize(w) for w in words[1:])
    if style is CaseStyle.PASCAL_CASE:
        return "".join(_capitalize(w) for w in words)
    return " ".join(w.lower() for w in words)


def truncate_words(words: List[str], style: CaseStyle, max_chars: int) -> str:
    """
    Join as many leading words as fit in max_chars.

    Never cuts a word in half unless even the first word is too long, in
    which case the result is hard-truncated.
    """
    full = apply_case(words, style)
    if max_chars <= 0 or len(full) <= max_chars:
        return full

    for count in range(len(words) - 1, 0, -1):
        candidate = apply_case(words[:count], style)
        if len(candidate) <= max_chars:
            return candidate

    return full[:max_chars]


def normalize_phrase(phrase: str, style: CaseStyle, max_chars: int) -> str:
    return truncate_words(split_words(phrase), style, max_chars)


class ContentNamer:
    """Turn image bytes into a short descriptive name via a ContentClient."""

    def __init__(self, model: str, max_chars: int, case: CaseStyle, language: str,
                 client: Optional[ContentClient] = None):
        self.model = model
        self.max_chars = max_chars
        self.case = case
        self.language = language
        self.client = client if client is not None else OllamaClient()

    @property
    def prompt(self) -> str:
        return PROMPT_TEMPLATE.format(case=self.case.value, max_chars=self.max_chars,
                                      language=self.language)

    def describe(self, image_bytes: bytes) -> Optional[str]:
        """Return a normalized phrase, or None when the model gives nothing usable."""
        try:
            raw = self.client.analyze(image_bytes, self.model, self.prompt)
        except (ContentAnalysisError, OSError) as e:
            logger.warning(f"AI content analysis failed: {e}")
            return None

        if raw is not None and not isinstance(raw, str):
            logger.warning(f"AI model returned a non-text description: {raw!r}")
            return None

        name = normalize_phrase(raw or "", self.case, self.max_chars)
        if not name:
            logger.warning("AI model returned an empty description")
            return None

        logger.info(f"AI generated filename: '{name}'")
        return name
