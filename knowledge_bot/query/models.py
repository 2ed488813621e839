"""Query pipeline data models."""

from pydantic import BaseModel, Field


class ContextFragment(BaseModel):
    """One labeled piece of retrieved knowledge placed in the prompt.

    Attributes:
        record_id: Identifier of the source record.
        title: Source title.
        url: Source URL.
        text: Labeled fragment text exactly as sent to the model.
        score: Similarity score of the source record.
        tokens: Token cost of ``text``.
        truncated: Whether ``text`` was cut to fit the budget.
    """

    record_id: str
    title: str = ""
    url: str = ""
    text: str
    score: float
    tokens: int = Field(ge=0)
    truncated: bool = False


class ContextWindow(BaseModel):
    """Token-budgeted, relevance-ordered context for one question."""

    fragments: list[ContextFragment] = Field(default_factory=list)
    total_tokens: int = Field(default=0, ge=0)
    budget: int = Field(ge=0)

    @property
    def texts(self) -> list[str]:
        return [fragment.text for fragment in self.fragments]

    @property
    def is_empty(self) -> bool:
        return not self.fragments


class Answer(BaseModel):
    """Answer to a question.

    Attributes:
        text: Answer text for the chat reply.
        grounded: False when no knowledge was available and the model was
            not consulted.
        sources: Context fragments the answer was generated from.
        context_tokens: Tokens of context placed in the prompt.
        prompt_tokens: Locally estimated prompt tokens.
        history_messages: Earlier conversation messages replayed to the model.
        model: Completion model.
        tokens_used: Provider-reported total tokens.
    """

    text: str
    grounded: bool
    sources: list[ContextFragment] = Field(default_factory=list)
    context_tokens: int = 0
    prompt_tokens: int = 0
    history_messages: int = 0
    model: str
    tokens_used: int = 0
