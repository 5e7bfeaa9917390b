"""Shared pytest fixtures for testing."""

import pytest

from interviewprep_core.content.activities import SkillCluster
from interviewprep_core.content.prompts import ActivityContext, LearningObjective, LearningTopic
from interviewprep_core.storage.memory import (
    InMemoryCounterStore,
    InMemoryKeyValueStore,
    InMemoryRecordStore,
)
from interviewprep_core.tiers.base import Tier, TierConfig, tier_setting_key
from interviewprep_core.tiers.resolver import TierConfigResolver
from interviewprep_core.tiers.store import KeyValueTierConfigStore
from tests.fakes import ManualClock


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def counter_store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


# =============================================================================
# Tier Fixtures
# =============================================================================


@pytest.fixture
def configured_kv_store() -> InMemoryKeyValueStore:
    """Settings store with every tier configured."""
    return InMemoryKeyValueStore({
        tier_setting_key(Tier.HIGH): TierConfig(
            tier=Tier.HIGH,
            primary_model="anthropic/claude-sonnet-4",
            fallback_model="openai/gpt-4o",
            temperature=0.5,
            max_tokens=8000,
        ).to_dict(),
        tier_setting_key(Tier.MEDIUM): TierConfig(
            tier=Tier.MEDIUM,
            primary_model="openai/gpt-4o-mini",
        ).to_dict(),
        tier_setting_key(Tier.LOW): TierConfig(
            tier=Tier.LOW,
            primary_model="meta-llama/llama-3.1-70b-instruct",
        ).to_dict(),
    })


@pytest.fixture
def resolver(configured_kv_store) -> TierConfigResolver:
    return TierConfigResolver(KeyValueTierConfigStore(configured_kv_store))


# =============================================================================
# Content Fixtures
# =============================================================================


@pytest.fixture
def activity_context() -> ActivityContext:
    topic = LearningTopic(
        id="topic-1",
        title="Binary Search",
        description="Searching sorted arrays in logarithmic time",
        skill_cluster=SkillCluster.DSA,
        learning_objectives=[
            LearningObjective("Implement iterative binary search"),
            LearningObjective("Know the recursive variant", is_core=False),
        ],
        key_concepts_to_master=["invariants", "midpoint overflow"],
        common_mistakes=["Off-by-one in the loop condition"],
    )
    return ActivityContext(
        goal="Pass a backend interview",
        topic=topic,
        difficulty=5,
        skill_cluster=SkillCluster.DSA,
    )
