"""Career generation service: questions, roadmaps and mentor greetings."""
import logging
from typing import Any, List
from pydantic import ValidationError

from app.core.errors import GenerationFailure
from app.services.career.models import QAndA, QuestionWithOptions, Roadmap
from app.services.career.prompt import (
    QUESTION_SYSTEM_PROMPT,
    ROADMAP_SYSTEM_PROMPT,
    get_mentor_intro_prompt,
    get_question_prompt,
    get_roadmap_prompt,
)
from app.services.generation.client import GenerationClient

logger = logging.getLogger(__name__)

MIN_OPTIONS = 4
MAX_OPTIONS = 6
ROADMAP_COUNT = 3


def validate_question(payload: Any) -> QuestionWithOptions:
    """
    Validate a generated question payload.

    Raises:
        GenerationFailure: if the question is blank or the options are not
            4-6 distinct, non-empty strings
    """
    if not isinstance(payload, dict):
        raise GenerationFailure("Invalid question format received")

    question = payload.get("question")
    options = payload.get("options")
    if not isinstance(question, str) or not question.strip():
        raise GenerationFailure("Invalid question format received")
    if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
        raise GenerationFailure("Invalid question format received")

    cleaned = [option.strip() for option in options]
    if any(not option for option in cleaned):
        raise GenerationFailure("Question options must not be empty")
    if not MIN_OPTIONS <= len(cleaned) <= MAX_OPTIONS:
        raise GenerationFailure(
            f"Expected {MIN_OPTIONS}-{MAX_OPTIONS} options, got {len(cleaned)}"
        )
    if len({option.casefold() for option in cleaned}) != len(cleaned):
        raise GenerationFailure("Question options must be distinct")

    return QuestionWithOptions(question=question.strip(), options=cleaned)


def validate_roadmaps(payload: Any) -> List[Roadmap]:
    """
    Validate a generated roadmap payload.

    Accepts a bare array or an object wrapping it under "roadmaps". An
    empty array is returned as-is; the caller decides what no roadmaps means.

    Raises:
        GenerationFailure: on missing arrays, blank fields or dangling edges
    """
    if isinstance(payload, dict):
        payload = payload.get("roadmaps")
    if not isinstance(payload, list):
        raise GenerationFailure("Roadmap payload must be an array")

    roadmaps = []
    for index, raw in enumerate(payload):
        try:
            roadmap = Roadmap.model_validate(raw)
        except ValidationError as e:
            raise GenerationFailure(f"Roadmap {index} is malformed: {e.error_count()} errors") from e

        if not roadmap.title.strip() or not roadmap.description.strip():
            raise GenerationFailure(f"Roadmap {index} is missing a title or description")
        if not roadmap.nodes:
            raise GenerationFailure(f"Roadmap {index} has no nodes")
        if any(not node.label.strip() for node in roadmap.nodes):
            raise GenerationFailure(f"Roadmap {index} has a node without a label")

        node_ids = {node.id for node in roadmap.nodes}
        for edge in roadmap.edges:
            if edge.source not in node_ids or edge.target not in node_ids:
                raise GenerationFailure(
                    f"Roadmap {index} edge {edge.id} references an unknown node"
                )
        roadmaps.append(roadmap)

    return roadmaps


class CareerGenerationService:
    """Issues generation requests for the questionnaire flow and mentor call."""

    def __init__(self, generation_client: GenerationClient):
        self.generation_client = generation_client

    async def generate_question(self, history: List[QAndA]) -> QuestionWithOptions:
        """Generate the next multiple-choice question."""
        logger.info(f"[QUESTIONNAIRE] Generating question - Answered so far: {len(history)}")
        payload = await self.generation_client.generate_json(
            QUESTION_SYSTEM_PROMPT, get_question_prompt(history)
        )
        question = validate_question(payload)
        logger.debug(f"[QUESTIONNAIRE] Generated question: '{question.question}'")
        return question

    async def generate_roadmaps(self, history: List[QAndA]) -> List[Roadmap]:
        """Generate career roadmaps from the completed questionnaire."""
        logger.info(f"[ROADMAPS] Generating roadmaps - History length: {len(history)}")
        payload = await self.generation_client.generate_json(
            ROADMAP_SYSTEM_PROMPT, get_roadmap_prompt(history, ROADMAP_COUNT)
        )
        roadmaps = validate_roadmaps(payload)
        logger.info(f"[ROADMAPS] Generated {len(roadmaps)} roadmaps")
        return roadmaps

    async def generate_mentor_intro(self, career_path: str) -> str:
        """Generate the mentor's spoken greeting for a career path."""
        logger.info(f"[MENTOR INTRO] Generating greeting - Career path: '{career_path}'")
        text = await self.generation_client.generate_text(
            get_mentor_intro_prompt(career_path)
        )
        if not text:
            raise GenerationFailure("Mentor greeting was empty")
        return text
