"""
Learning Content

Activity content types, generation prompts and activity type selection.
"""

from interviewprep_core.content.activities import (
    ACTIVITY_CONTENT_ADAPTER,
    ACTIVITY_TASKS,
    CONTENT_MODELS,
    ActivityContent,
    ActivityType,
    CodingChallenge,
    ConceptExplanation,
    DebuggingTask,
    MCQActivity,
    SkillCluster,
    activity_json_schema,
    content_model_for,
    validate_activity,
)
from interviewprep_core.content.prompts import (
    ACTIVITY_SYSTEM_PROMPT,
    ActivityContext,
    LearningObjective,
    LearningTopic,
    Subtopic,
    build_activity_prompt,
    build_topic_context,
    difficulty_description,
)
from interviewprep_core.content.selection import activity_weights, select_activity_type

__all__ = [
    "ACTIVITY_CONTENT_ADAPTER",
    "ACTIVITY_TASKS",
    "CONTENT_MODELS",
    "ActivityContent",
    "ActivityType",
    "CodingChallenge",
    "ConceptExplanation",
    "DebuggingTask",
    "MCQActivity",
    "SkillCluster",
    "activity_json_schema",
    "content_model_for",
    "validate_activity",
    "ACTIVITY_SYSTEM_PROMPT",
    "ActivityContext",
    "LearningObjective",
    "LearningTopic",
    "Subtopic",
    "build_activity_prompt",
    "build_topic_context",
    "difficulty_description",
    "activity_weights",
    "select_activity_type",
]
