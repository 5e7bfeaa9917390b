"""
Activity Content
================

Structured learning activities generated for a learning path topic.

Content is a discriminated union on ``type``: every variant is a pydantic
model with a literal ``type`` field, and validation picks the variant from
that field. Field names are snake_case in Python and camelCase on the wire.

Usage:
    activity = validate_activity({"type": "mcq", "question": ..., ...})
    if isinstance(activity, MCQActivity):
        ...
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel


class ActivityType(str, Enum):
    """Kinds of learning activity."""
    MCQ = "mcq"
    CODING_CHALLENGE = "coding-challenge"
    DEBUGGING_TASK = "debugging-task"
    CONCEPT_EXPLANATION = "concept-explanation"
    REAL_WORLD_ASSIGNMENT = "real-world-assignment"
    MINI_CASE_STUDY = "mini-case-study"


class SkillCluster(str, Enum):
    """Skill areas a topic belongs to."""
    DSA = "dsa"
    OOP = "oop"
    SYSTEM_DESIGN = "system-design"
    DEBUGGING = "debugging"
    DATABASES = "databases"
    API_DESIGN = "api-design"
    TESTING = "testing"
    DEVOPS = "devops"
    FRONTEND = "frontend"
    BACKEND = "backend"
    SECURITY = "security"
    PERFORMANCE = "performance"


class _Content(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MCQActivity(_Content):
    type: Literal["mcq"] = "mcq"
    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=4, max_length=4)
    correct_answer: str
    explanation: str

    @model_validator(mode="after")
    def _answer_is_an_option(self) -> "MCQActivity":
        if self.correct_answer not in self.options:
            raise ValueError("correctAnswer must match one of the options exactly")
        return self


class CodingChallenge(_Content):
    type: Literal["coding-challenge"] = "coding-challenge"
    problem_description: str = Field(min_length=1)
    input_format: str
    output_format: str
    evaluation_criteria: List[str] = Field(min_length=1)
    starter_code: Optional[str] = None
    sample_input: str
    sample_output: str


class DebuggingTask(_Content):
    type: Literal["debugging-task"] = "debugging-task"
    buggy_code: str = Field(min_length=1)
    expected_behavior: str
    hints: List[str] = Field(default_factory=list)


class ConceptExplanation(_Content):
    type: Literal["concept-explanation"] = "concept-explanation"
    content: str = Field(min_length=1)
    key_points: List[str] = Field(min_length=1)
    examples: List[str] = Field(default_factory=list)


ActivityContent = Annotated[
    Union[MCQActivity, CodingChallenge, DebuggingTask, ConceptExplanation],
    Field(discriminator="type"),
]

ACTIVITY_CONTENT_ADAPTER: TypeAdapter = TypeAdapter(ActivityContent)

# Types without a schema of their own are generated as concept explanations
CONTENT_MODELS: Dict[ActivityType, Type[_Content]] = {
    ActivityType.MCQ: MCQActivity,
    ActivityType.CODING_CHALLENGE: CodingChallenge,
    ActivityType.DEBUGGING_TASK: DebuggingTask,
    ActivityType.CONCEPT_EXPLANATION: ConceptExplanation,
    ActivityType.REAL_WORLD_ASSIGNMENT: ConceptExplanation,
    ActivityType.MINI_CASE_STUDY: ConceptExplanation,
}

# Task each activity type resolves its tier for
ACTIVITY_TASKS: Dict[ActivityType, str] = {
    ActivityType.MCQ: "generate_mcq_activity",
    ActivityType.CODING_CHALLENGE: "generate_coding_challenge",
    ActivityType.DEBUGGING_TASK: "generate_debugging_task",
    ActivityType.CONCEPT_EXPLANATION: "generate_concept_explanation",
    ActivityType.REAL_WORLD_ASSIGNMENT: "generate_concept_explanation",
    ActivityType.MINI_CASE_STUDY: "generate_concept_explanation",
}


def content_model_for(activity_type: ActivityType) -> Type[_Content]:
    return CONTENT_MODELS[ActivityType(activity_type)]


def activity_json_schema(activity_type: ActivityType) -> Dict[str, Any]:
    """JSON schema sent to the provider for an activity type."""
    return content_model_for(activity_type).model_json_schema(by_alias=True)


def validate_activity(data: Dict[str, Any]) -> Union[MCQActivity, CodingChallenge, DebuggingTask, ConceptExplanation]:
    """Validate a complete activity object.

    Raises:
        pydantic.ValidationError: If the object matches no variant
    """
    return ACTIVITY_CONTENT_ADAPTER.validate_python(data)


__all__ = [
    "ActivityType",
    "SkillCluster",
    "MCQActivity",
    "CodingChallenge",
    "DebuggingTask",
    "ConceptExplanation",
    "ActivityContent",
    "ACTIVITY_CONTENT_ADAPTER",
    "CONTENT_MODELS",
    "ACTIVITY_TASKS",
    "content_model_for",
    "activity_json_schema",
    "validate_activity",
]
