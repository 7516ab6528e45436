"""
Protocol definition for structured-output chat models.

A ChatModel turns a list of OpenAI-style messages into an instance of the
requested pydantic schema. Implementations translate provider failures into
the domain's fatal error types (ChatModelAuthError, ChatModelBadRequestError,
ChatModelForbiddenError); asyncio.CancelledError propagates unchanged and
any other exception is treated as transient by callers.
"""

from typing import Any, Protocol, TypeVar

from pydantic import BaseModel

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class ChatModelProtocol(Protocol):
    """Request/response wrapper around one LLM; stateless and shareable."""

    async def invoke(
        self,
        messages: list[dict[str, Any]],
        response_schema: type[SchemaT],
    ) -> SchemaT:
        """
        Run one completion and parse it into response_schema.

        Args:
            messages: Messages with 'role' and 'content'
            response_schema: Pydantic model describing the expected output

        Returns:
            Validated instance of response_schema
        """
        ...
