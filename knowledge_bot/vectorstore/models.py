"""Knowledge record models stored in and returned from the vector database."""

from pydantic import BaseModel, ConfigDict, Field


class KnowledgeEntry(BaseModel):
    """The text fields of a unit of knowledge, as returned by search."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Stable record identifier")
    title: str = Field(default="", description="Document title")
    url: str = Field(default="", description="Source URL, may be empty")
    content: str = Field(min_length=1, description="Knowledge text")

    def payload(self) -> dict[str, str]:
        """Fields stored alongside the vector."""
        return {
            "record_id": self.id,
            "title": self.title,
            "url": self.url,
            "content": self.content,
        }


class KnowledgeRecord(KnowledgeEntry):
    """An embedded unit of knowledge.

    Records are immutable; re-ingesting the same ``id`` replaces the stored
    record as a whole.
    """

    embedding: list[float] = Field(min_length=1, description="Embedding vector")

    @property
    def dimensions(self) -> int:
        return len(self.embedding)


class SearchHit(BaseModel):
    """A record returned by similarity search.

    Attributes:
        record: The matching entry (vectors are not fetched).
        score: Similarity score (higher is more similar).
    """

    model_config = ConfigDict(frozen=True)

    record: KnowledgeEntry
    score: float = Field(description="Similarity score")
