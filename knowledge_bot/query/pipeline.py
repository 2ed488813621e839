"""Question answering orchestrator."""

from knowledge_bot.embeddings.gateway import EmbeddingGateway
from knowledge_bot.exceptions import (
    ErrorCode,
    ProviderError,
    QueryError,
    StoreError,
    ValidationError,
    wrap_error,
)
from knowledge_bot.llm.client import Completer
from knowledge_bot.llm.models import Message, Role
from knowledge_bot.llm.prompts import GroundedPromptTemplate
from knowledge_bot.logging_config import get_logger
from knowledge_bot.observability.metrics import track_query
from knowledge_bot.query.context import assemble_context
from knowledge_bot.query.history import ConversationHistory
from knowledge_bot.query.models import Answer, ContextWindow
from knowledge_bot.tokens import TokenAccountant
from knowledge_bot.vectorstore.models import SearchHit
from knowledge_bot.vectorstore.service import VectorStore

logger = get_logger(__name__)

NO_KNOWLEDGE_ANSWER = (
    "I don't have any knowledge about that yet, so I can't give a grounded answer."
)


class QueryPipeline:
    """Answers questions from a knowledge collection.

    Steps run strictly in sequence: embed the question, search, assemble a
    token-budgeted context, generate. A collection with no matching records
    gets a fixed refusal and the completion provider is not called.

    With a ``history`` and a ``reply_target``, earlier turns of that
    conversation are replayed to the model. They may use at most half of the
    budget left after the prompt and answer headroom; the oldest turns are
    dropped first.
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        store: VectorStore,
        completer: Completer,
        accountant: TokenAccountant,
        prompt_template: GroundedPromptTemplate | None = None,
        top_k: int = 3,
        token_budget: int = 4096,
        answer_headroom: int = 512,
        history: ConversationHistory | None = None,
    ) -> None:
        """Initialize the query pipeline.

        Args:
            gateway: Cached embedding access.
            store: Knowledge store to search.
            completer: Chat completion provider.
            accountant: Token counter for the completion model.
            prompt_template: Prompt layout.
            top_k: Default number of candidates to retrieve.
            token_budget: Default prompt + answer budget.
            answer_headroom: Tokens reserved for the generated answer.
            history: Per-conversation memory; None disables it.
        """
        self._gateway = gateway
        self._store = store
        self._completer = completer
        self._accountant = accountant
        self._template = prompt_template or GroundedPromptTemplate()
        self._top_k = top_k
        self._token_budget = token_budget
        self._answer_headroom = answer_headroom
        self._history = history

    async def answer(
        self,
        collection: str,
        question: str,
        top_k: int | None = None,
        token_budget: int | None = None,
        reply_target: str | None = None,
    ) -> Answer:
        """Answer ``question`` from ``collection``.

        ``reply_target`` identifies the conversation (e.g. a chat user) whose
        earlier turns are included and to which this turn is added.

        Raises:
            ValidationError: If the question or limits are invalid.
            QueryError: QUERY_EMBEDDING_FAILED, SEARCH_FAILED,
                NO_USABLE_CONTEXT or COMPLETION_FAILED.
        """
        top_k = self._top_k if top_k is None else top_k
        budget = self._token_budget if token_budget is None else token_budget
        if not question.strip():
            raise ValidationError("Question is empty")
        if top_k < 1 or budget < 1:
            raise ValidationError(
                "top_k and token_budget must be positive",
                details={"top_k": top_k, "token_budget": budget},
            )

        logger.info(
            "Answering question",
            extra={"collection": collection, "question_length": len(question), "top_k": top_k},
        )

        try:
            hits = await self._retrieve(collection, question, top_k)
            if not hits:
                logger.info("No knowledge found", extra={"collection": collection})
                track_query("no_knowledge")
                self._remember(reply_target, question, NO_KNOWLEDGE_ANSWER)
                return Answer(
                    text=NO_KNOWLEDGE_ANSWER,
                    grounded=False,
                    model=self._completer.model_name,
                )

            history = self._fit_history(question, self._recall(reply_target), budget)
            window, prompt_tokens = self._build_context(question, hits, budget, history)
            messages = self._template.build_messages(question, window.texts, history)

            try:
                result = await self._completer.generate(
                    messages, max_tokens=self._answer_headroom
                )
            except ProviderError as e:
                raise wrap_error(
                    e, QueryError, ErrorCode.COMPLETION_FAILED, "Completion",
                    collection=collection,
                ) from e
        except QueryError:
            track_query("error")
            raise

        self._remember(reply_target, question, result.content)
        track_query("grounded", window.total_tokens)
        logger.info(
            "Question answered",
            extra={
                "collection": collection,
                "fragments": len(window.fragments),
                "context_tokens": window.total_tokens,
                "history_messages": len(history),
                "tokens_used": result.total_tokens,
            },
        )
        return Answer(
            text=result.content,
            grounded=True,
            sources=window.fragments,
            context_tokens=window.total_tokens,
            prompt_tokens=prompt_tokens,
            history_messages=len(history),
            model=result.model,
            tokens_used=result.total_tokens,
        )

    async def answer_text(
        self, collection: str, question: str, reply_target: str | None = None
    ) -> str:
        """Answer with default limits, returning only the reply text."""
        answer = await self.answer(collection, question, reply_target=reply_target)
        return answer.text

    async def _retrieve(self, collection: str, question: str, top_k: int) -> list[SearchHit]:
        try:
            vector = await self._gateway.embed(question)
        except ProviderError as e:
            raise wrap_error(
                e, QueryError, ErrorCode.QUERY_EMBEDDING_FAILED, "Question embedding",
                collection=collection,
            ) from e

        try:
            return await self._store.search(collection, vector, top_k)
        except StoreError as e:
            raise wrap_error(
                e, QueryError, ErrorCode.SEARCH_FAILED, "Knowledge search",
                collection=collection,
            ) from e

    def _recall(self, reply_target: str | None) -> list[Message]:
        if self._history is None or reply_target is None:
            return []
        return self._history.messages(reply_target)

    def _remember(self, reply_target: str | None, question: str, reply: str) -> None:
        if self._history is not None and reply_target is not None:
            self._history.record(reply_target, question, reply)

    def _fit_history(
        self,
        question: str,
        history: list[Message],
        budget: int,
    ) -> list[Message]:
        """Most recent turns using at most half of the free budget."""
        if not history:
            return []
        empty_prompt = self._accountant.count_messages(
            self._template.build_messages(question, [])
        )
        allowance = (budget - empty_prompt - self._answer_headroom) // 2
        bare = self._accountant.count_messages([])

        kept = list(history)
        # Always start on a question so the replay reads as whole turns.
        while kept and (
            self._accountant.count_messages(kept) - bare > allowance
            or kept[0].role != Role.USER
        ):
            kept.pop(0)
        if len(kept) < len(history):
            logger.debug(
                "Trimmed conversation history",
                extra={"kept": len(kept), "dropped": len(history) - len(kept)},
            )
        return kept

    def _build_context(
        self,
        question: str,
        hits: list[SearchHit],
        budget: int,
        history: list[Message],
    ) -> tuple[ContextWindow, int]:
        """Assemble context so that prompt plus answer headroom fits ``budget``.

        Returns the window and the estimated prompt tokens.
        """
        empty_prompt = self._accountant.count_messages(
            self._template.build_messages(question, [], history)
        )
        context_budget = budget - empty_prompt - self._answer_headroom

        while context_budget > 0:
            window = assemble_context(hits, self._accountant, self._template, context_budget)
            if window.is_empty:
                break
            prompt_tokens = self._accountant.count_messages(
                self._template.build_messages(question, window.texts, history)
            )
            # Tokens can merge across fragment boundaries; shrink until exact.
            excess = prompt_tokens + self._answer_headroom - budget
            if excess <= 0:
                return window, prompt_tokens
            context_budget -= excess

        raise QueryError(
            "Token budget leaves no room for retrieved knowledge",
            code=ErrorCode.NO_USABLE_CONTEXT,
            details={
                "token_budget": budget,
                "reserved_tokens": empty_prompt + self._answer_headroom,
            },
        )
