"""Weighted activity type selection."""

import random
from typing import Dict, List, Optional, Sequence

from interviewprep_core.content.activities import ActivityType, SkillCluster

SELECTABLE_TYPES: List[ActivityType] = [
    ActivityType.MCQ,
    ActivityType.CODING_CHALLENGE,
    ActivityType.DEBUGGING_TASK,
    ActivityType.CONCEPT_EXPLANATION,
]

_MCQ = ActivityType.MCQ
_CODE = ActivityType.CODING_CHALLENGE
_DEBUG = ActivityType.DEBUGGING_TASK
_CONCEPT = ActivityType.CONCEPT_EXPLANATION

CLUSTER_WEIGHTS: Dict[SkillCluster, Dict[ActivityType, float]] = {
    SkillCluster.DSA: {_CODE: 3, _MCQ: 2, _DEBUG: 1, _CONCEPT: 1},
    SkillCluster.OOP: {_CODE: 2, _MCQ: 2, _DEBUG: 2, _CONCEPT: 2},
    SkillCluster.SYSTEM_DESIGN: {_CONCEPT: 3, _MCQ: 2, _CODE: 1, _DEBUG: 1},
    SkillCluster.DEBUGGING: {_DEBUG: 4, _CODE: 2, _MCQ: 1, _CONCEPT: 1},
    SkillCluster.DATABASES: {_CODE: 2, _MCQ: 2, _CONCEPT: 2, _DEBUG: 1},
    SkillCluster.API_DESIGN: {_CODE: 2, _CONCEPT: 2, _MCQ: 2, _DEBUG: 1},
    SkillCluster.TESTING: {_CODE: 2, _DEBUG: 2, _MCQ: 2, _CONCEPT: 1},
    SkillCluster.DEVOPS: {_CONCEPT: 2, _MCQ: 2, _DEBUG: 2, _CODE: 1},
    SkillCluster.FRONTEND: {_CODE: 2, _DEBUG: 2, _MCQ: 2, _CONCEPT: 1},
    SkillCluster.BACKEND: {_CODE: 3, _DEBUG: 2, _MCQ: 2, _CONCEPT: 1},
    SkillCluster.SECURITY: {_MCQ: 2, _CONCEPT: 2, _DEBUG: 2, _CODE: 1},
    SkillCluster.PERFORMANCE: {_DEBUG: 2, _CODE: 2, _CONCEPT: 2, _MCQ: 1},
}

RECENT_WINDOW = 5
RECENT_PENALTY = 0.5
MIN_WEIGHT = 0.1


def activity_weights(
    skill_cluster: SkillCluster,
    recent_types: Sequence[ActivityType] = (),
) -> Dict[ActivityType, float]:
    """Selection weight per type, lowered for each recent use."""
    base = CLUSTER_WEIGHTS.get(SkillCluster(skill_cluster), {})
    recent = [ActivityType(t) for t in list(recent_types)[-RECENT_WINDOW:]]
    return {
        t: max(MIN_WEIGHT, base.get(t, 1) - recent.count(t) * RECENT_PENALTY)
        for t in SELECTABLE_TYPES
    }


def select_activity_type(
    skill_cluster: SkillCluster,
    recent_types: Sequence[ActivityType] = (),
    rng: Optional[random.Random] = None,
) -> ActivityType:
    """Pick an activity type, favouring the cluster's strengths and variety."""
    weights = activity_weights(skill_cluster, recent_types)
    rng = rng or random.Random()
    return rng.choices(list(weights), weights=list(weights.values()), k=1)[0]


__all__ = [
    "SELECTABLE_TYPES",
    "CLUSTER_WEIGHTS",
    "activity_weights",
    "select_activity_type",
]
