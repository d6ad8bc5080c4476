"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import List, Optional, Dict, Any, Union
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY, CHAT_MODEL, VISION_MODEL
from services.errors import InvalidResponseStructure

logger = logging.getLogger(__name__)


@dataclass
class ImageData:
    """Inline image sent alongside a prompt."""
    base64: str
    mime_type: str = "image/jpeg"

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Client for interfacing with Groq API for categorization, chat and OCR."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = CHAT_MODEL,
        vision_model: str = VISION_MODEL
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            default_model: Model used for text-only prompts
            vision_model: Model used when an image is attached
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.default_model = default_model
        self.vision_model = vision_model
        self.client = Groq(api_key=self.api_key)
        logger.info("LLMClient initialized successfully")

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        image: Optional[ImageData] = None,
        json_mode: bool = False,
        max_tokens: int = 1024,
        temperature: float = 0.7
    ) -> LLMResponse:
        """
        Generate a response using Groq API.

        Args:
            prompt: Complete prompt text
            model: Model name; defaults to the vision model when an image is
                attached and to the default model otherwise
            image: Optional inline image
            json_mode: Ask the API to force a JSON object response
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            InvalidResponseStructure: Response carried no choice/message text
            LLMClientError: Structured error with code, message, and details
        """
        model = model or (self.vision_model if image else self.default_model)
        start_time = time.time()

        request: Dict[str, Any] = {
            "model": model,
            "messages": [
                {
                    "role": "user",
                    "content": self._build_content(prompt, image)
                }
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            logger.debug(f"Generating response with model: {model} (json_mode={json_mode})")

            response = self.client.chat.completions.create(**request)

            latency_ms = int((time.time() - start_time) * 1000)

            text = self._first_text(response)

            usage = getattr(response, "usage", None)
            tokens_input = getattr(usage, "prompt_tokens", 0) or 0
            tokens_output = getattr(usage, "completion_tokens", 0) or 0

            logger.info(
                f"Generated response: model={model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=model
            )

        except InvalidResponseStructure:
            logger.error(f"Invalid response structure from model={model}")
            raise

        except RateLimitError as e:
            raise self._error(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e,
                retry_after=60
            )

        except AuthenticationError as e:
            raise self._error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )

        except APITimeoutError as e:
            raise self._error(
                "TIMEOUT_ERROR",
                "Request timed out. Please try again.",
                model, start_time, e
            )

        except APIError as e:
            raise self._error(
                "API_ERROR",
                f"Groq API error: {str(e)}",
                model, start_time, e
            )

        except Exception as e:
            raise self._error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e,
                error_type=type(e).__name__
            )

    @staticmethod
    def _build_content(prompt: str, image: Optional[ImageData]) -> Union[str, List[Dict[str, Any]]]:
        if image is None:
            return prompt
        return [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": image.data_url}},
        ]

    @staticmethod
    def _first_text(response: Any) -> str:
        choices = getattr(response, "choices", None)
        if not choices:
            raise InvalidResponseStructure("Invalid API response structure: no choices")
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            raise InvalidResponseStructure("Invalid API response structure: no message content")
        return content

    @staticmethod
    def _error(
        code: str,
        message: str,
        model: str,
        start_time: float,
        original: Exception,
        **extra: Any
    ) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        details: Dict[str, Any] = {
            "model": model,
            "latency_ms": latency_ms,
            "original_error": str(original),
        }
        details.update(extra)
        error = LLMError(code=code, message=message, details=details)
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        return LLMClientError(error)

    @staticmethod
    def build_prompt(
        query: str,
        context: str,
        category: str,
        has_image: bool = False
    ) -> str:
        """
        Build the chat prompt from the retrieval context and the question.

        Args:
            query: User question
            context: Retrieval context text (may be empty)
            category: Detected intent category
            has_image: Whether an image accompanies the question

        Returns:
            Complete prompt string
        """
        image_section = ""
        if has_image:
            image_section = "\n- An image has been provided. Analyze it in the context of the manual."

        prompt = f"""Context from manual ({category} category):
{context or "No context available."}

User Question: {query}

Instructions:
- Answer using the context provided
- Be helpful and concise
- Reference page numbers when available
- If not in context, say so but try to help
- Use markdown formatting{image_section}"""

        return prompt
