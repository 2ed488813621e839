"""Ingestion input and outcome models."""

from pydantic import BaseModel, ConfigDict, Field

from knowledge_bot.exceptions import KnowledgeBotError


class KnowledgeDocument(BaseModel):
    """A knowledge document as read from a knowledge file.

    Attributes:
        title: Document title.
        url: Source URL, may be empty.
        content: Knowledge text; must be non-blank to be ingested.
        id: Optional stable identifier; generated at ingestion when absent.
    """

    title: str = Field(default="", description="Document title")
    url: str = Field(default="", description="Source URL")
    content: str = Field(default="", description="Knowledge text")
    id: str | None = Field(default=None, description="Stable record identifier")


class IngestResult(BaseModel):
    """Outcome of ingesting one document of a batch."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str
    record_id: str | None = None
    error: KnowledgeBotError | None = None

    @property
    def success(self) -> bool:
        return self.error is None
