"""Application-wide service objects, built once at startup."""

import logging
import random
from dataclasses import dataclass
from typing import Optional

from articles.cache import DocumentCache, TemplateCache
from articles.narrative import NarrativeGenerator
from articles.store import ArticleStore
from config import Settings
from llm.gemini import GeminiClient
from llm.prompts import PromptLibrary
from services.market_data import MarketDataService
from services.notifier import TelegramNotifier

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Everything request handlers need, stored on ``app.state.services``."""

    settings: Settings
    document_cache: DocumentCache
    template_cache: TemplateCache
    store: ArticleStore
    narrative: NarrativeGenerator
    gemini: GeminiClient
    prompts: PromptLibrary
    notifier: TelegramNotifier
    market_data: MarketDataService

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        gemini: Optional[GeminiClient] = None,
        notifier: Optional[TelegramNotifier] = None,
        rng: Optional[random.Random] = None,
    ) -> "AppServices":
        """Build the service graph from configuration.

        ``gemini``, ``notifier`` and ``rng`` can be passed in to replace the
        real clients, as the tests do.
        """
        if settings.cache_ttl_seconds > 0:
            document_cache = DocumentCache(settings.cache_ttl_seconds)
        else:
            document_cache = DocumentCache.disabled()
        template_cache = TemplateCache()
        store = ArticleStore(settings.ARTICLES_DIR, document_cache)
        narrative = NarrativeGenerator.from_file(settings.PHRASE_TABLE_PATH, rng=rng)
        prompts = PromptLibrary(template_cache, settings.PROMPTS_DIR)
        if gemini is None:
            gemini = GeminiClient(
                api_key=settings.GEMINI_API_KEY,
                model=settings.GEMINI_MODEL,
                base_url=settings.GEMINI_BASE_URL,
                timeout=settings.GEMINI_TIMEOUT_SECONDS,
                retry_delays=settings.retry_schedule(),
            )
        if notifier is None:
            notifier = TelegramNotifier(
                settings.TELEGRAM_BOT_TOKEN,
                settings.TELEGRAM_CHANNEL,
                site_url=settings.SITE_URL,
            )
        market_data = MarketDataService(store, narrative, gemini, prompts, notifier)

        logger.info(
            "Services ready: articles_dir=%s cache=%s gemini=%s telegram=%s",
            store.articles_dir,
            "enabled (%ss)" % document_cache.ttl_seconds if document_cache.enabled else "disabled",
            "configured" if gemini.is_configured else "not configured",
            "configured" if notifier.is_configured else "not configured",
        )
        return cls(
            settings=settings,
            document_cache=document_cache,
            template_cache=template_cache,
            store=store,
            narrative=narrative,
            gemini=gemini,
            prompts=prompts,
            notifier=notifier,
            market_data=market_data,
        )

    async def aclose(self) -> None:
        await self.gemini.close()
        await self.notifier.close()
