"""Questionnaire and roadmap models."""
from typing import Any, List, Literal, Optional
from pydantic import BaseModel, Field, computed_field, model_validator


class QAndA(BaseModel):
    """One answered questionnaire question."""

    question: str
    answer: str


class QuestionWithOptions(BaseModel):
    """A multiple-choice questionnaire question."""

    question: str
    options: List[str]


class NodePosition(BaseModel):
    """Flowchart node coordinates."""

    x: float
    y: float


class RoadmapNode(BaseModel):
    """A single step of a roadmap flowchart."""

    id: str
    type: Literal["input", "output", "default"] = "default"
    label: str
    position: NodePosition

    @model_validator(mode="before")
    @classmethod
    def lift_data_label(cls, value: Any) -> Any:
        # The flowchart library nests the label as data.label
        if isinstance(value, dict) and "label" not in value:
            data = value.get("data")
            if isinstance(data, dict) and "label" in data:
                value = {**value, "label": data["label"]}
        return value

    @computed_field
    @property
    def data(self) -> dict:
        return {"label": self.label}


class RoadmapEdge(BaseModel):
    """A connection between two roadmap nodes."""

    id: str
    source: str
    target: str


class Roadmap(BaseModel):
    """A career roadmap rendered as a flowchart."""

    title: str
    description: str
    nodes: List[RoadmapNode]
    edges: List[RoadmapEdge]


class QuestionnaireStep(BaseModel):
    """Result of asking for the next questionnaire step."""

    complete: bool
    answered: int
    total: int
    question: Optional[QuestionWithOptions] = None


class HistoryRequest(BaseModel):
    """Request body carrying the questionnaire history."""

    history: List[QAndA] = Field(default_factory=list)
