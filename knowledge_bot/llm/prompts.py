"""Prompt template for grounded answers."""

from knowledge_bot.llm.models import Message, Role


class GroundedPromptTemplate:
    """Builds the chat messages for a question answered from labeled context.

    Context fragments are numbered and labeled with their title and source so
    the model can cite them.
    """

    DEFAULT_SYSTEM_PROMPT = """You are a helpful assistant for a community chat server. Answer questions using the knowledge provided in the context.

Rules:
- Answer ONLY based on the provided context
- If the context does not contain the answer, say you don't know
- Be concise and direct
- Cite fragments by their number, e.g. [1]"""

    DEFAULT_USER_TEMPLATE = """Context:
{context}

Question: {question}

Answer:"""

    FRAGMENT_SEPARATOR = "\n\n"

    def __init__(
        self,
        system_prompt: str | None = None,
        user_template: str | None = None,
    ) -> None:
        self.system_prompt = system_prompt or self.DEFAULT_SYSTEM_PROMPT
        self.user_template = user_template or self.DEFAULT_USER_TEMPLATE

    def format_fragment(self, index: int, title: str, url: str, text: str) -> str:
        """Label a single context fragment; ``index`` is 1-based."""
        header = f"[{index}] {title}" if title else f"[{index}]"
        if url:
            header = f"{header} ({url})"
        return f"{header}\n{text}{self.FRAGMENT_SEPARATOR}"

    def build_messages(
        self,
        question: str,
        fragments: list[str],
        history: list[Message] | None = None,
    ) -> list[Message]:
        """Build system, prior conversation and user messages.

        ``fragments`` are already labeled; ``history`` goes between the
        system prompt and the question, oldest first.
        """
        context = "".join(fragments).rstrip()
        return [
            Message(role=Role.SYSTEM, content=self.system_prompt),
            *(history or []),
            Message(
                role=Role.USER,
                content=self.user_template.format(context=context, question=question),
            ),
        ]
