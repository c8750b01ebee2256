"""
Devotional summary generation.

Builds the prompt from the fetched video and asks the configured LLM
provider for a WhatsApp-formatted message. Rate-limit and quota errors are
retried with a linear backoff; every other LLM error propagates at once.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from .errors import LLMError, ErrorCode, ShutdownRequestedError
from .llm.base import LLMProvider
from .logging import get_logger
from .models import VideoItem

logger = get_logger("summarizer")

RETRYABLE_CODES = (ErrorCode.LLM_RATE_LIMITED, ErrorCode.LLM_QUOTA_EXCEEDED)

# Large transcripts are cut to keep the request within model context limits
MAX_CONTENT_CHARS = 30000

SYSTEM_PROMPT = (
    "Voce e um assistente criativo especializado em conteudo cristao evangelico. "
    "Voce escreve mensagens devocionais calorosas para grupos de WhatsApp."
)

PROMPT_TEMPLATE = """Analise o video devocional abaixo e escreva uma mensagem pronta para envio no WhatsApp.

TITULO DO VIDEO: {title}
LINK DO VIDEO: {url}

{content_label}:
{content}

Estrutura obrigatoria da mensagem (use *texto* para negrito, no estilo WhatsApp):

1. Uma saudacao acolhedora e encorajadora
2. O titulo do episodio em destaque
3. Um resumo do ensinamento em 4 a 6 paragrafos claros e inspiradores
4. Um versiculo biblico chave citado no video (ou ligado ao tema)
5. Uma reflexao ou aplicacao pratica para o dia
6. O link do video completo
7. Uma despedida com uma bencao

Regras:
- Linguagem acolhedora, carinhosa e edificante
- Emojis relevantes para deixar a mensagem expressiva
- Apenas *asterisco simples* para negrito; nada de ## ou **
- Entre 300 e 500 palavras
- Tudo em portugues do Brasil

Responda somente com a mensagem, sem comentarios adicionais."""


def build_prompt(item: VideoItem) -> str:
    """Render the user prompt for one video."""
    if item.transcript:
        label, content = "TRANSCRICAO DO VIDEO", item.transcript
    else:
        label, content = "DESCRICAO DO VIDEO", item.description or "(sem descricao)"

    return PROMPT_TEMPLATE.format(
        title=item.title,
        url=item.url,
        content_label=label,
        content=content[:MAX_CONTENT_CHARS],
    )


class Summarizer:
    """Turns a VideoItem into the message sent to every destination."""

    def __init__(
        self,
        provider: LLMProvider,
        max_attempts: int = 3,
        backoff_seconds: float = 30,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        stop_event: Optional[asyncio.Event] = None,
    ):
        self.provider = provider
        self.stop_event = stop_event
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        provider: LLMProvider,
        config: dict,
        stop_event: Optional[asyncio.Event] = None,
    ) -> "Summarizer":
        llm_config = config.get("llm", {})
        return cls(
            provider=provider,
            max_attempts=llm_config.get("max_attempts", 3),
            backoff_seconds=llm_config.get("rate_limit_backoff_seconds", 30),
            stop_event=stop_event,
        )

    async def summarize(self, item: VideoItem) -> str:
        """
        Generate the formatted message for `item`.

        Raises:
            LLMError: When generation fails or retries are exhausted
        """
        prompt = build_prompt(item)
        logger.info("Generating summary with %s...", self.provider.model_name)

        for attempt in range(1, self.max_attempts + 1):
            try:
                text = await asyncio.to_thread(self.provider.generate, prompt, SYSTEM_PROMPT)
            except LLMError as e:
                if e.code not in RETRYABLE_CODES or attempt >= self.max_attempts:
                    raise
                wait = self.backoff_seconds * attempt
                logger.warning(
                    "LLM rate limited (attempt %d/%d), waiting %ss...",
                    attempt, self.max_attempts, wait,
                )
                await self._backoff(wait)
                continue

            logger.info("Summary generated: %d characters (model: %s)", len(text), self.provider.model_name)
            return text

        # Unreachable: the loop either returns or raises
        raise LLMError(ErrorCode.LLM_EMPTY_RESPONSE)

    async def _backoff(self, seconds: float) -> None:
        """Wait before retrying; a shutdown request cancels the retry."""
        if self.stop_event is None:
            await self._sleep(seconds)
            return

        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise ShutdownRequestedError("Shutdown requested, summary retry cancelled")
