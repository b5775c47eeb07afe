# This project was developed with assistance from AI tools.
"""RFC 7807 Problem Details error response schema."""

from pydantic import BaseModel, Field

from .document import EvidenceRecord


class ErrorResponse(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs.

    See https://datatracker.ietf.org/doc/html/rfc7807
    """

    type: str = Field(
        default="about:blank",
        description="URI reference identifying the problem type.",
    )
    title: str = Field(description="Short human-readable summary of the problem.")
    status: int = Field(description="HTTP status code.")
    detail: str = Field(
        default="",
        description="Human-readable explanation specific to this occurrence.",
    )
    request_id: str = Field(
        default="",
        description="Correlation ID for tracing this request in logs.",
    )


class UploadFailedResponse(ErrorResponse):
    """Problem details for a batch that failed partway through."""

    filename: str = Field(description="File whose upload failed.")
    index: int = Field(description="Position of that file among the new files of the batch.")
    uploaded: list[EvidenceRecord] = Field(
        default_factory=list,
        description="Files of the same batch that were stored; send their ids as carried_over "
        "when retrying.",
    )
