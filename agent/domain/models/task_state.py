from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommandComplexity(str, Enum):
    """Complexity assigned by the command classifier"""
    SIMPLE = "simple"
    COMPLEX = "complex"


class TaskStatus(str, Enum):
    """Multi-step task status"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class StepStatus(str, Enum):
    """Step execution status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ClassificationResult(BaseModel):
    """Outcome of classifying a single command"""
    model_config = ConfigDict(frozen=True)

    is_multi_step: bool = False
    complexity: CommandComplexity = CommandComplexity.SIMPLE
    steps: List[str] = Field(default_factory=list)

    @classmethod
    def simple(cls) -> "ClassificationResult":
        return cls(is_multi_step=False, complexity=CommandComplexity.SIMPLE, steps=[])


class Step(BaseModel):
    """One planned sub-unit of a task"""
    id: int = Field(description="1-based ordinal of the step")
    description: str = Field(description="Human-readable step description")
    status: StepStatus = Field(default=StepStatus.PENDING)
    result: str = Field(default="", description="Reported step result")


class Task(BaseModel):
    """A multi-step run and its progress state"""
    session_id: str = Field(description="Owning conversation")
    command: str = Field(description="Original command text")
    steps: List[Step] = Field(default_factory=list)
    current_step: int = Field(default=0, description="Index of the step being attempted")
    status: TaskStatus = Field(default=TaskStatus.IN_PROGRESS)
    final_result: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def completed_steps(self) -> int:
        return len([s for s in self.steps if s.status == StepStatus.COMPLETED])

    @property
    def progress(self) -> float:
        """Fraction of steps reported as completed"""
        if not self.steps:
            return 0.0
        return self.completed_steps / len(self.steps)

    def touch(self):
        self.updated_at = utcnow()

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of the current task state"""
        return {
            "session_id": self.session_id,
            "command": self.command,
            "status": self.status.value,
            "current_step": self.current_step,
            "completed_steps": self.completed_steps,
            "total_steps": len(self.steps),
            "progress": round(self.progress * 100, 1),
            "steps": [step.model_dump(mode="json") for step in self.steps],
            "final_result": self.final_result,
            "last_activity": self.updated_at.isoformat()
        }


class StepExecutionResult(BaseModel):
    """Structured result reported for one executed step"""
    step_result: str = Field(description="What the step produced")
    details: Optional[str] = Field(None, description="Optional supporting details")
    next_step_context: Optional[str] = Field(None, description="What the next step needs to know")
    success: bool = Field(description="Whether the step logically succeeded")

    @property
    def continuation(self) -> str:
        """Context handed to the following step"""
        return self.next_step_context or self.step_result


class SummaryResult(BaseModel):
    """Final synthesized report for a task"""
    summary: str
    next_actions: Optional[List[str]] = None


class StepPlan(BaseModel):
    """Decomposition returned by the planner"""
    steps: List[str] = Field(min_length=1)


class ConversationRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationEntry(BaseModel):
    """A single conversation turn"""
    role: ConversationRole
    content: str
    session_id: str
    timestamp: datetime = Field(default_factory=utcnow)
