"""Request context shared by the orchestrator and its tools."""

from dataclasses import dataclass, field
from typing import Optional

from interviewprep_core.tiers.base import Plan, PlanContext


@dataclass
class InterviewContext:
    job_title: str
    company: str
    resume_text: Optional[str] = None


@dataclass
class LearningContext:
    goal: str
    difficulty: str
    current_topic: Optional[str] = None


@dataclass
class OrchestratorContext:
    """Who is asking and what they are working on."""

    user_id: str
    plan_context: PlanContext
    request_id: Optional[str] = None
    interview: Optional[InterviewContext] = None
    learning: Optional[LearningContext] = None
    api_key: Optional[str] = field(default=None, repr=False)

    @property
    def plan(self) -> Plan:
        return self.plan_context.plan


__all__ = ["InterviewContext", "LearningContext", "OrchestratorContext"]
