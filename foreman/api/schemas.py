"""
Backend API Schemas - Pydantic models for work order service payloads

Response models ignore fields they do not know about; the backend adds
fields over time and the assistant only relies on the ones below.
"""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Response(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ============================================================
# REQUESTS
# ============================================================

class ChatQueryRequest(BaseModel):
    query: str
    user_id: int
    type: Literal["text", "voice"] = "text"


class FeedbackRequest(BaseModel):
    session_id: str
    step_number: int
    feedback: Literal["positive", "negative"]
    notes: str = ""
    user_id: int


class WorkOrderFeedbackRequest(BaseModel):
    step_id: int
    feedback_text: str
    time_spent: float


class AgenticRagRequest(BaseModel):
    query: str


# ============================================================
# RESPONSES
# ============================================================

class StepInfo(_Response):
    id: Optional[int] = None
    step_number: Optional[int] = None
    title: str = ""
    description: str = ""
    instruction: str = ""
    estimated_time: Optional[float] = None


class WorkOrderInfo(_Response):
    id: Optional[int] = None
    number: Optional[str] = None


class Progress(_Response):
    completed: int = 0
    total: int = 0
    percentage: float = 0.0


class CompletionSummary(_Response):
    summary_text: Optional[str] = None
    major_issues_resolved: Optional[str] = None
    recommendations_for_customer: Optional[str] = None

    @field_validator('major_issues_resolved', 'recommendations_for_customer', mode='before')
    @classmethod
    def join_lists(cls, v):
        if isinstance(v, list):
            return ", ".join(str(item) for item in v)
        return v


class WorkOrderStartResponse(_Response):
    """Response of start, resume and restart"""
    type: str
    session_id: Optional[str] = None
    message: str = ""
    tts_text: Optional[str] = None
    current_step: Optional[StepInfo] = None
    work_order: Optional[WorkOrderInfo] = None

    @property
    def is_error(self) -> bool:
        return self.type == "error"


class FeedbackResponse(_Response):
    """Response of both feedback endpoints"""
    type: Optional[str] = None
    status: Optional[str] = None
    message: str = ""
    tts_text: Optional[str] = None
    current_step: Optional[StepInfo] = None
    next_step: Optional[StepInfo] = None
    progress: Optional[Progress] = None
    summary: Optional[CompletionSummary] = None
    total_steps: Optional[int] = None
    total_time: Optional[Union[float, str]] = None
    completed_steps: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return self.type in ("complete", "work_order_complete")

    @property
    def is_next_step(self) -> bool:
        return self.type == "next_step"


class AgenticRagResponse(_Response):
    success: bool = False
    result: Optional[str] = None
    route: Optional[str] = None
    tts_text: Optional[str] = None
    response: Optional[str] = None

    @property
    def answer(self) -> str:
        """Text to show: result on success, then response, then tts_text"""
        if self.success and self.result:
            return self.result
        return self.response or self.tts_text or self.result or ""


class FeedbackHistoryItem(_Response):
    id: int
    session_id: Optional[str] = None
    step_number: Optional[int] = None
    feedback: Optional[str] = None
    notes: str = ""
    created_at: Optional[str] = None


class FeedbackHistoryResponse(_Response):
    feedbacks: List[FeedbackHistoryItem] = Field(default_factory=list)
