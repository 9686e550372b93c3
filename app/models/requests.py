# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shape of data coming INTO the API. FastAPI uses these for request body
# validation (automatic 422 errors) and OpenAPI docs at /docs.
#
# DESIGN DECISION: camelCase on the wire, snake_case in Python.
# The chat frontend sends `enableWebSearch`, `isFirstMessage` and
# `conversationHistory`. `alias_generator=to_camel` maps them, and
# `populate_by_name=True` also accepts the snake_case spelling.
#
# DESIGN DECISION: Empty queries are rejected here.
# The classifier never special-cases an empty string, so a blank or
# whitespace-only query must not reach the pipeline.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ConversationMessage(BaseModel):
    """One prior turn supplied by the conversation-history collaborator."""

    role: Literal["user", "assistant"]
    content: str


class QueryRequest(BaseModel):
    """
    Request body for POST /query.

    Example:
        {
            "query": "Who is the director of IIT Kharagpur?",
            "enableWebSearch": true,
            "isFirstMessage": false,
            "conversationHistory": [
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "Hello! How can I help?"}
            ]
        }
    """

    query: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="The user's question",
        examples=["Which hall has the best mess food?"],
    )
    enable_web_search: bool = Field(
        default=True,
        description="Allow live web search as a fallback when local knowledge is thin",
    )
    is_first_message: bool = Field(
        default=False,
        description="First message of a conversation (the answer opens with a greeting)",
    )
    conversation_history: list[ConversationMessage] = Field(
        default_factory=list,
        description="Prior turns, oldest first. Read-only context for follow-ups.",
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"query": "hi"},
                {
                    "query": "his research papers",
                    "conversationHistory": [
                        {"role": "user", "content": "who is the director"},
                        {
                            "role": "assistant",
                            "content": "The director is Professor Jane Doe.",
                        },
                    ],
                },
            ]
        },
    )

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be blank")
        return value
