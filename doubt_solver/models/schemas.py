from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

SENTINEL_ANSWER = "See solution steps above"


class Subject(str, Enum):
    physics = "physics"
    chemistry = "chemistry"
    mathematics = "mathematics"
    biology = "biology"


class _WireModel(BaseModel):
    # python names internally, camelCase on the wire
    model_config = ConfigDict(populate_by_name=True)


class SolveRequest(_WireModel):
    # everything optional: the validator owns the rule order and messages
    user_id: Optional[str] = Field(default=None, alias="userId")
    query: Optional[str] = None
    subject: Optional[str] = None


class Step(_WireModel):
    index: int = Field(..., alias="step", ge=1)
    text: str
    concept: Optional[str] = None


class Solution(_WireModel):
    steps: List[Step]
    final_answer: str = Field(default=SENTINEL_ANSWER, alias="finalAnswer")
    explanation: str = ""


class SolveMetadata(_WireModel):
    subject: Subject
    step_count: int = Field(..., alias="stepCount")
    response_time_ms: int = Field(..., alias="responseTimeMs")


class SolveResponse(_WireModel):
    success: bool = True
    steps: List[Step]
    final_answer: str = Field(..., alias="finalAnswer")
    metadata: SolveMetadata
    cached: bool = False


class ErrorResponse(_WireModel):
    success: bool = False
    error_kind: str = Field(..., alias="errorKind")
    message: str
    category: str


class HistoryRecord(_WireModel):
    user_id: str = Field(..., alias="userId")
    query_type: str = Field(default="text", alias="queryType")
    query_text: str = Field(..., alias="queryText")
    subject: Subject
    topic: str = "Unclassified"
    solution_steps: List[Step] = Field(default_factory=list, alias="solutionSteps")
    final_answer: str = Field(..., alias="finalAnswer")
    confidence: float = 0.9
    created_at: datetime = Field(..., alias="createdAt")


class HistoryItem(_WireModel):
    query_text: str = Field(..., alias="queryText")
    subject: str
    final_answer: Optional[str] = Field(default=None, alias="finalAnswer")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class HistoryResponse(_WireModel):
    success: bool = True
    doubts: List[HistoryItem]
