"""
Activity Prompts

Prompt builders for learning activity generation.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from interviewprep_core.content.activities import ActivityType, SkillCluster


@dataclass
class LearningObjective:
    description: str
    is_core: bool = True


@dataclass
class Subtopic:
    title: str
    description: str


@dataclass
class LearningTopic:
    """A learning path topic and the detail the prompts draw on."""

    id: str
    title: str
    description: str
    skill_cluster: SkillCluster
    learning_objectives: List[LearningObjective] = field(default_factory=list)
    key_concepts_to_master: List[str] = field(default_factory=list)
    subtopics: List[Subtopic] = field(default_factory=list)
    common_mistakes: List[str] = field(default_factory=list)
    real_world_applications: List[str] = field(default_factory=list)
    interview_relevance: Optional[str] = None


@dataclass
class ActivityContext:
    """Inputs of one activity generation."""

    goal: str
    topic: LearningTopic
    difficulty: int  # 1-10
    skill_cluster: SkillCluster
    previous_activities: List[ActivityType] = field(default_factory=list)


ACTIVITY_SYSTEM_PROMPT = """You are an expert technical educator and interview preparation specialist. Your role is to generate high-quality learning activities that help users master technical concepts.

Guidelines:
- Create activities appropriate for the specified difficulty level (1-10 scale)
- Ensure content is accurate, practical, and relevant to real-world scenarios
- For MCQs, all options should be plausible to avoid obvious elimination
- For coding challenges, provide clear problem statements and evaluation criteria
- For debugging tasks, include realistic bugs that developers commonly encounter
- Adapt complexity based on the skill cluster and topic context"""


def difficulty_description(difficulty: int) -> str:
    if difficulty <= 2:
        return "beginner-friendly, focusing on fundamentals"
    if difficulty <= 4:
        return "intermediate, requiring solid understanding"
    if difficulty <= 6:
        return "advanced, testing deeper knowledge"
    if difficulty <= 8:
        return "expert-level, requiring comprehensive mastery"
    return "extremely challenging, for senior/principal level expertise"


def build_topic_context(topic: LearningTopic) -> str:
    """Topic details as prompt sections. Empty fields are left out."""
    sections = [
        f"Topic: {topic.title}",
        f"Description: {topic.description}",
    ]

    objectives = "\n".join(
        f"  - {obj.description}" for obj in topic.learning_objectives if obj.is_core
    )
    if objectives:
        sections.append(f"Core Learning Objectives:\n{objectives}")

    if topic.key_concepts_to_master:
        sections.append(f"Key Concepts: {', '.join(topic.key_concepts_to_master)}")

    if topic.subtopics:
        subtopics = "\n".join(f"  - {s.title}: {s.description}" for s in topic.subtopics)
        sections.append(f"Subtopics:\n{subtopics}")

    if topic.common_mistakes:
        sections.append(f"Common Mistakes to Address: {'; '.join(topic.common_mistakes)}")

    if topic.real_world_applications:
        sections.append(f"Real-World Applications: {', '.join(topic.real_world_applications)}")

    if topic.interview_relevance:
        sections.append(f"Interview Relevance: {topic.interview_relevance}")

    return "\n\n".join(sections)


def build_activity_prompt(context: ActivityContext, activity_type: ActivityType) -> str:
    """User prompt for one activity type."""
    title = context.topic.title
    base_context = f"""## Context
Learning Goal: {context.goal}
Skill Cluster: {SkillCluster(context.skill_cluster).value}
Difficulty Level: {context.difficulty}/10 ({difficulty_description(context.difficulty)})

## Topic Details
{build_topic_context(context.topic)}"""

    activity_type = ActivityType(activity_type)

    if activity_type == ActivityType.MCQ:
        return f"""Generate a multiple choice question for learning about "{title}".

{base_context}

Create a question that tests understanding of the key concepts. Include 4 plausible options with one correct answer and a detailed explanation.

Generate a JSON object with type "mcq", question, options (exactly 4), correctAnswer, and explanation."""

    if activity_type == ActivityType.CODING_CHALLENGE:
        return f"""Generate a coding challenge for learning about "{title}".

{base_context}

Create a practical problem that tests the topic's key concepts with clear requirements and evaluation criteria.

Generate a JSON object with type "coding-challenge", problemDescription, inputFormat, outputFormat, evaluationCriteria, sampleInput, and sampleOutput."""

    if activity_type == ActivityType.DEBUGGING_TASK:
        mistakes = ""
        if context.topic.common_mistakes:
            listed = "\n".join(f"- {m}" for m in context.topic.common_mistakes)
            mistakes = f"\n\nCommon Mistakes to Incorporate as Bugs:\n{listed}"
        return f"""Generate a debugging task for learning about "{title}".

{base_context}{mistakes}

Create realistic buggy code that incorporates common mistakes. Provide hints appropriate for the difficulty level.

Generate a JSON object with type "debugging-task", buggyCode (IMPORTANT: format with proper newlines and indentation, NOT on a single line), expectedBehavior, and hints array."""

    return f"""Generate a comprehensive concept explanation for learning about "{title}".

{base_context}

Provide a thorough explanation covering all key concepts, with practical examples and key takeaways.

Generate a JSON object with type "concept-explanation", content (detailed markdown), keyPoints (5-7 items), and examples (2-4 practical examples)."""


__all__ = [
    "LearningObjective",
    "Subtopic",
    "LearningTopic",
    "ActivityContext",
    "ACTIVITY_SYSTEM_PROMPT",
    "difficulty_description",
    "build_topic_context",
    "build_activity_prompt",
]
