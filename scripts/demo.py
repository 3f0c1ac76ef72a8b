#!/usr/bin/env python3
"""
Demo script for the ToolSense cache.

Walks through query normalization, cache hits across equivalent queries,
language isolation and rate limiting. Uses a canned generator so no Gemini
key is needed; set CACHE_BACKEND=redis to run against a real Redis.
"""

import asyncio
import tempfile

from toolsense_cache import ChatService, RateLimiter, normalize_query
from toolsense_cache.api.dependencies import build_cache_store
from toolsense_cache.config import settings
from toolsense_cache.entities import ChatMessage, GenerationResult
from toolsense_cache.errors import RateLimitExceededError
from toolsense_cache.logging_config import configure_logging
from toolsense_cache.repositories import FileCacheRepository


class CannedGenerator:
    """Stands in for Gemini: returns a short fixed brief."""

    model_name = "canned"

    async def generate(
        self,
        message: str,
        history: list[ChatMessage],
        language: str = "en",
    ) -> GenerationResult:
        return GenerationResult(
            text=f"## ToolSense AI Security Brief: {message} ({language})",
            model=self.model_name,
        )

    async def close(self) -> None:
        pass


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def demo_normalization() -> None:
    print_section("Query Normalization")

    for query in ["GitLab", "https://www.gitlab.com/", "  GITLAB.COM ", "Slack, Inc.", "192.168.1.10"]:
        print(f"  {query!r:32} -> {normalize_query(query)!r}")


async def demo_cache(service: ChatService) -> None:
    print_section("Cache Hits Across Equivalent Queries")

    for query, language in [("GitLab", "en"), ("https://gitlab.com", "en"), ("gitlab.com", "ru")]:
        outcome = await service.chat(query, language=language, client_id="demo")
        status = "HIT" if outcome.cached else "MISS"
        print(f"  [{status:4}] {query!r} ({language}) -> {outcome.message}")

    stats = service.cache.stats()
    print(f"\n  Entries: total={stats.total} valid={stats.valid} expired={stats.expired}")


async def demo_rate_limit(service: ChatService) -> None:
    print_section("Rate Limiting")

    for attempt in range(1, 5):
        try:
            outcome = await service.chat("Notion", client_id="burst")
            print(f"  #{attempt} allowed, remaining={outcome.rate_limit.remaining}")
        except RateLimitExceededError as e:
            print(f"  #{attempt} rejected, retry after {e.result.retry_after_seconds}s")


async def main() -> None:
    """Run all demos."""
    configure_logging("WARNING")

    print("\nToolSense Cache Demo")
    print("=" * 70)

    demo_normalization()

    with tempfile.TemporaryDirectory() as tmp:
        if settings.cache_backend == "file":
            cache = FileCacheRepository(cache_dir=tmp)
        else:
            cache = build_cache_store(settings)

        service = ChatService.create(cache=cache, generator=CannedGenerator())
        await demo_cache(service)

        strict = ChatService.create(
            cache=cache,
            generator=CannedGenerator(),
            rate_limiter=RateLimiter(),
            max_requests=2,
        )
        await demo_rate_limit(strict)

    print("\n" + "=" * 70)
    print("Demo completed successfully!")
    print("=" * 70)


if __name__ == "__main__":
    asyncio.run(main())
