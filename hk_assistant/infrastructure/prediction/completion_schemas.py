"""
Pydantic models for the OpenAI-compatible chat-completion wire format.

Only the fields the prediction pipeline reads are declared; anything else
the provider sends is ignored. Message content arrives either as a plain
string or as a list of typed parts, and ``message_text`` is the single
adapter that turns both into text.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ChatMessage(_Lenient):
    """A request message."""

    role: str
    content: str


class ChatCompletionRequest(_Lenient):
    """Request body for ``POST /chat/completions``."""

    model: str
    messages: list[ChatMessage]
    max_tokens: int
    stream: Optional[bool] = None

    @classmethod
    def for_prompt(
        cls, prompt: str, model: str, max_tokens: int, stream: bool = False
    ) -> "ChatCompletionRequest":
        return cls(
            model=model,
            messages=[ChatMessage(role="user", content=prompt)],
            max_tokens=max_tokens,
            stream=True if stream else None,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ErrorBody(_Lenient):
    """Provider error object."""

    message: Optional[str] = None
    code: Optional[Union[str, int]] = None

    @field_validator("message", mode="before")
    @classmethod
    def _null_message(cls, value: Any) -> Any:
        return value if value is not None else ""


class ResponseMessage(_Lenient):
    """Assistant message of a non-streamed choice."""

    content: Optional[Union[str, list[Any]]] = None
    reasoning_content: Optional[str] = None


class Choice(_Lenient):
    message: ResponseMessage = Field(default_factory=ResponseMessage)
    finish_reason: Optional[str] = None

    @field_validator("message", mode="before")
    @classmethod
    def _null_message(cls, value: Any) -> Any:
        return value if value is not None else {}


class ChatCompletionResponse(_Lenient):
    """Envelope of a non-streamed completion."""

    error: Optional[ErrorBody] = None
    choices: list[Choice] = Field(default_factory=list)

    @field_validator("error", mode="before")
    @classmethod
    def _bare_string_error(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"message": value}
        return value

    @field_validator("choices", mode="before")
    @classmethod
    def _null_choices(cls, value: Any) -> Any:
        return value if value is not None else []


class Delta(_Lenient):
    content: Optional[str] = None
    reasoning_content: Optional[str] = None


class ChunkChoice(_Lenient):
    delta: Delta = Field(default_factory=Delta)
    finish_reason: Optional[str] = None


class ChatCompletionChunk(_Lenient):
    """One ``data:`` payload of a streamed completion."""

    choices: list[ChunkChoice] = Field(default_factory=list)

    @field_validator("choices", mode="before")
    @classmethod
    def _null_choices(cls, value: Any) -> Any:
        return value if value is not None else []


def message_text(content: Optional[Union[str, list[Any]]]) -> str:
    """Flatten message content to text.

    In a part list only objects whose ``text`` is a string contribute;
    anything else in the list is skipped.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "".join(
        part["text"]
        for part in content
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


def delta_text(delta: Delta) -> str:
    """Fragment text of a delta, falling back to the reasoning channel."""
    return delta.content or delta.reasoning_content or ""
