"""
Prompt templates for promotional messages.

Each template fixes a tone; every rendering carries the contract address
verbatim, the ticker when known, and the same length/hashtag instruction.
"""

import random
from typing import Optional, Sequence

from pydantic import BaseModel

from kolagent.services.types import GenerationRequest, TokenIdentity

SYSTEM_INSTRUCTION = (
    "You are a well-known crypto KOL on X. You write short, punchy posts about "
    "memecoins in a confident, native crypto-Twitter voice. You never use more "
    "than one hashtag and never exceed the requested length."
)

FORMAT_INSTRUCTION = (
    "Keep it under 280 characters with exactly one hashtag. "
    "Reply with the post text only."
)


class PromptTemplate(BaseModel):
    name: str
    body: str  # Placeholders: {address}, {ticker_clause}, {name_clause}

    def render(self, identity: TokenIdentity) -> str:
        body = self.body.format(
            address=identity.address,
            ticker_clause=_ticker_clause(identity.ticker_symbol),
            name_clause=_name_clause(identity.display_name),
        )
        return " ".join(f"{body} {FORMAT_INSTRUCTION}".split())


def _ticker_clause(ticker: Optional[str]) -> str:
    return f"The token symbol is ${ticker}." if ticker else ""


def _name_clause(name: Optional[str]) -> str:
    return f"The project is called {name}." if name else ""


PROMPT_POOL = (
    PromptTemplate(
        name="enthusiastic",
        body=(
            "Write an enthusiastic promotional message for a memecoin with contract "
            "address {address}. {ticker_clause} {name_clause} Encourage readers to join "
            "in on the next big opportunity in crypto."
        ),
    ),
    PromptTemplate(
        name="fomo",
        body=(
            "Write an urgent, FOMO-inducing post about a memecoin with contract address "
            "{address}. {ticker_clause} {name_clause} Make readers feel the window to get "
            "in early is closing fast."
        ),
    ),
    PromptTemplate(
        name="community",
        body=(
            "Write a warm, community-building post inviting people to join the holders "
            "of the memecoin at contract address {address}. {ticker_clause} {name_clause} "
            "Emphasize belonging and building together."
        ),
    ),
    PromptTemplate(
        name="cryptic",
        body=(
            "Write a short, cryptic and mysterious teaser about a memecoin with contract "
            "address {address}. {ticker_clause} {name_clause} Hint that something big is "
            "coming without explaining what."
        ),
    ),
    PromptTemplate(
        name="educational",
        body=(
            "Write a brief, educational post explaining why the memecoin at contract "
            "address {address} is worth a look. {ticker_clause} {name_clause} Mention "
            "one concrete thing readers should check before buying."
        ),
    ),
    PromptTemplate(
        name="meme",
        body=(
            "Write a funny, meme-style post shilling the memecoin with contract address "
            "{address}. {ticker_clause} {name_clause} Use crypto-Twitter humor and "
            "at most two emojis."
        ),
    ),
    PromptTemplate(
        name="degen",
        body=(
            "Write a confident degen-trader style call on the memecoin with contract "
            "address {address}. {ticker_clause} {name_clause} Sound like a trader who "
            "just spotted a fresh on-chain buy."
        ),
    ),
)


def select_prompt(pool: Sequence[PromptTemplate], rng: random.Random) -> PromptTemplate:
    """Uniform draw from the pool; independent per call."""
    if not pool:
        raise ValueError("Prompt pool is empty")
    return rng.choice(pool)


def build_generation_request(
    identity: TokenIdentity,
    rng: random.Random,
    max_output_tokens: int = 100,
    pool: Sequence[PromptTemplate] = PROMPT_POOL,
) -> GenerationRequest:
    template = select_prompt(pool, rng)
    return GenerationRequest(
        prompt_text=template.render(identity),
        system_instruction=SYSTEM_INSTRUCTION,
        max_output_tokens=max_output_tokens,
        template_name=template.name,
    )
