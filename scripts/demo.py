#!/usr/bin/env python3
"""
Demo script for maya cache.

This script walks through the response cache and the conversation state
machine with a canned completion provider, so it runs without network access
or an API key. Sample messages are in English and Arabic.
"""

import asyncio

from maya_cache.evaluator import MessagePair, RepetitionEvaluator
from maya_cache.protocols import PromptContext
from maya_cache.repositories import ResponseCache
from maya_cache.services import ChatService, ConversationStateManager
from maya_cache.utils import configure_logging


class CannedProvider:
    """Answers every question with a fixed travel tip."""

    model_name = "canned-demo"

    def __init__(self) -> None:
        self.calls = 0

    async def complete(self, context: PromptContext) -> str:
        self.calls += 1
        question = context.messages[-1]["content"]
        return f"Here is a travel tip about: {question}"

    async def is_available(self) -> bool:
        return True


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def demo_response_cache() -> None:
    """Demonstrate LRU + TTL behaviour."""
    print_section("Response Cache (LRU + TTL)")

    now = [0.0]
    cache = ResponseCache.create(max_entries=3, default_ttl_ms=1000, clock=lambda: now[0])

    cache.set("A", "reply A")
    cache.set("B", "reply B")
    cache.set("C", "reply C")
    cache.get("A")
    cache.set("D", "reply D")

    print("\n📦 Capacity 3, inserted A B C, touched A, inserted D")
    for key in ("A", "B", "C", "D"):
        print(f"  {key}: {'✓ cached' if key in cache else '✗ evicted'}")

    now[0] = 1500
    print("\n⏱  After 1.5s (TTL 1s):")
    print(f"  get('A') -> {cache.get('A')}")

    stats = cache.stats()
    print(
        f"\n📊 hits={stats.hits} misses={stats.misses} "
        f"evictions={stats.evictions} expirations={stats.expirations}"
    )


async def demo_chat() -> None:
    """Demonstrate caching, repetition detection and termination in a chat."""
    print_section("Chat Flow")

    provider = CannedProvider()
    conversations = ConversationStateManager.create(window_size=6, repeat_match_threshold=3)
    service = ChatService.create(
        cache=ResponseCache.create(max_entries=100),
        conversations=conversations,
        provider=provider,
        lookback=1,
    )

    messages = [
        ("alice", "Best time to visit Petra?"),
        ("bob", "best time to visit petra"),
        ("alice", "What about Wadi Rum?"),
        ("alice", "What about Wadi Rum?"),
        ("alice", "what about wadi rum??"),
        ("alice", "Any hotels in Aqaba?"),
        ("bob", "شكرا وداعا"),
    ]

    for session_id, message in messages:
        result = await service.chat(session_id, message)
        print(f"\n  [{session_id}] {message}")
        print(f"  → {result.source:<14} {result.state.value:<12} {result.reply[:60]}")
        for option in result.options:
            print(f"      • {option}")

    print(f"\n🤖 Provider calls: {provider.calls}")
    print(f"📈 Metrics: {service.metrics.to_dict()}")


def demo_threshold_tuning() -> None:
    """Demonstrate near-duplicate threshold tuning."""
    print_section("Threshold Tuning")

    pairs = [
        # Should match (the user is repeating themselves)
        MessagePair("Best time to visit Petra?", "best time to visit petra", should_match=True),
        MessagePair("Hotels in Dubai Marina", "hotels in dubai marina pls", should_match=True),
        MessagePair("How much is a visa?", "how much is the visa", should_match=True),
        # Should not match (related but different questions)
        MessagePair("Hotels in Dubai Marina", "Hotels in Abu Dhabi", should_match=False),
        MessagePair("Flights to Cairo", "Trains to Luxor", should_match=False),
    ]

    evaluator = RepetitionEvaluator()
    evaluator.sweep_thresholds(pairs, min_threshold=0.05, max_threshold=0.5, steps=10)
    print(evaluator.summary())

    threshold, result = evaluator.find_optimal_threshold("f1_score")
    print(f"\n🎯 Best F1: threshold {threshold:.3f} ({result.f1_score:.2%})")


def main() -> None:
    """Run all demos."""
    configure_logging("WARNING")

    print("\n🚀 Maya Cache Demo")
    print("=" * 70)

    demo_response_cache()
    asyncio.run(demo_chat())
    demo_threshold_tuning()

    print("\n" + "=" * 70)
    print("✅ Demo completed successfully!")
    print("=" * 70)


if __name__ == "__main__":
    main()
