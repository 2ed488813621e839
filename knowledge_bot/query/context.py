"""Context window assembly."""

from knowledge_bot.llm.prompts import GroundedPromptTemplate
from knowledge_bot.query.models import ContextFragment, ContextWindow
from knowledge_bot.tokens import TokenAccountant
from knowledge_bot.vectorstore.models import SearchHit


def assemble_context(
    hits: list[SearchHit],
    accountant: TokenAccountant,
    template: GroundedPromptTemplate,
    budget: int,
) -> ContextWindow:
    """Select fragments for the prompt, most relevant first.

    Candidates are walked in descending score order and added while the
    running total stays within ``budget``. Assembly stops at the first
    fragment that does not fit, so the result is always a prefix of the
    ranked candidates. If not even the best candidate fits, it is truncated
    token-exactly to ``budget`` instead of returning an empty window.
    """
    ranked = sorted(hits, key=lambda hit: hit.score, reverse=True)
    window = ContextWindow(budget=max(budget, 0))
    if budget <= 0:
        return window

    for index, hit in enumerate(ranked, start=1):
        record = hit.record
        text = template.format_fragment(index, record.title, record.url, record.content)
        if not accountant.fits(window.total_tokens, text, budget):
            break
        tokens = accountant.count(text)
        window.fragments.append(
            ContextFragment(
                record_id=record.id,
                title=record.title,
                url=record.url,
                text=text,
                score=hit.score,
                tokens=tokens,
            )
        )
        window.total_tokens += tokens

    if window.is_empty and ranked:
        best = ranked[0]
        record = best.record
        full = template.format_fragment(1, record.title, record.url, record.content)
        text = accountant.truncate(full, budget)
        if text:
            tokens = accountant.count(text)
            window.fragments.append(
                ContextFragment(
                    record_id=record.id,
                    title=record.title,
                    url=record.url,
                    text=text,
                    score=best.score,
                    tokens=tokens,
                    truncated=True,
                )
            )
            window.total_tokens = tokens

    return window
