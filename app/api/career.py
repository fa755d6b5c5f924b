"""Questionnaire and roadmap endpoints."""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from app.core.config import settings
from app.core.dependencies import get_career_service
from app.core.errors import GenerationFailure
from app.services.career.models import HistoryRequest, QAndA, QuestionnaireStep, Roadmap
from app.services.career.service import CareerGenerationService

router = APIRouter()
logger = logging.getLogger(__name__)

QUESTION_FAILED_MESSAGE = "Failed to load question. Please try again."
ROADMAPS_EMPTY_MESSAGE = "Sorry, I couldn't generate any roadmaps. Please try again."
ROADMAPS_FAILED_MESSAGE = (
    "An error occurred while generating your roadmaps. Please refresh and try again."
)


class RoadmapRequest(BaseModel):
    """Roadmap generation request."""
    history: List[QAndA] = Field(min_length=1)


class RoadmapResponse(BaseModel):
    """Generated roadmaps."""
    roadmaps: List[Roadmap]


@router.post("/api/questionnaire/next", response_model=QuestionnaireStep)
async def next_question(
    request: Request,
    body: HistoryRequest,
    career_service: CareerGenerationService = Depends(get_career_service),
):
    """Get the next questionnaire question, or report the questionnaire complete."""
    total = settings.questionnaire_total_questions
    answered = len(body.history)
    logger.info(
        f"[QUESTIONNAIRE] Next question requested - Answered: {answered}/{total}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    if answered >= total:
        return QuestionnaireStep(complete=True, answered=answered, total=total)

    try:
        question = await career_service.generate_question(body.history)
    except GenerationFailure as e:
        logger.error(
            f"[QUESTIONNAIRE] Question generation failed - Answered: {answered}, "
            f"Error: {str(e)}"
        )
        raise HTTPException(status_code=502, detail=QUESTION_FAILED_MESSAGE)

    return QuestionnaireStep(complete=False, answered=answered, total=total, question=question)


@router.post("/api/roadmaps", response_model=RoadmapResponse)
async def generate_roadmaps(
    request: Request,
    body: RoadmapRequest,
    career_service: CareerGenerationService = Depends(get_career_service),
):
    """Generate career roadmaps from the completed questionnaire."""
    logger.info(
        f"[ROADMAPS] Request received - History length: {len(body.history)}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        roadmaps = await career_service.generate_roadmaps(body.history)
    except GenerationFailure as e:
        logger.error(f"[ROADMAPS] Roadmap generation failed - Error: {str(e)}")
        raise HTTPException(status_code=502, detail=ROADMAPS_FAILED_MESSAGE)

    if not roadmaps:
        raise HTTPException(status_code=502, detail=ROADMAPS_EMPTY_MESSAGE)

    return RoadmapResponse(roadmaps=roadmaps)
