"""Interview router."""
import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from mockinterview.dependencies import get_interview_service
from mockinterview.exceptions import InterviewNotFoundError, PersistenceError
from mockinterview.models.interview import InterviewDefinition
from mockinterview.schemas.interview import (
    CompleteInterviewRequest,
    GenerateInterviewRequest,
    GenerateInterviewResponse,
    SuccessResponse,
)
from mockinterview.services.interview_service import InterviewGenerationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Interviews"])


@router.post("/generate-interview", response_model=GenerateInterviewResponse)
async def generate_interview(
    request: GenerateInterviewRequest,
    service: InterviewGenerationService = Depends(get_interview_service)
):
    """Create an interview from explicit details or from a setup conversation."""
    try:
        if request.is_direct:
            details = request.details()
            interview = await service.create_from_form(request.user_id, details)
        else:
            interview, details = await service.create_from_transcript(request.user_id, request.conversation)
        return GenerateInterviewResponse(
            interview_id=str(interview.id),
            questions=interview.questions,
            details=details
        )
    except PersistenceError as e:
        logger.error(f"Error saving interview: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to save interview"})
    except Exception as e:
        logger.error(f"Error generating interview: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to generate interview"})


@router.post("/complete-interview", response_model=SuccessResponse)
async def complete_interview(
    request: CompleteInterviewRequest,
    service: InterviewGenerationService = Depends(get_interview_service)
):
    """Mark an interview finalized without feedback."""
    try:
        await service.complete_interview(request.interview_id)
        return SuccessResponse()
    except InterviewNotFoundError as e:
        return JSONResponse(status_code=404, content={"success": False, "error": str(e)})
    except Exception as e:
        logger.error(f"Error completing interview: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to complete interview"})


@router.get("/interviews/{interview_id}", response_model=InterviewDefinition)
async def get_interview(
    interview_id: str,
    service: InterviewGenerationService = Depends(get_interview_service)
):
    interview = await service.get_interview(interview_id)
    if interview is None:
        raise HTTPException(status_code=404, detail="Interview not found")
    return interview


@router.get("/users/{user_id}/interviews", response_model=List[InterviewDefinition])
async def list_user_interviews(
    user_id: str,
    status: Literal["all", "pending", "completed"] = Query("all"),
    service: InterviewGenerationService = Depends(get_interview_service)
):
    """A user's interviews, newest first."""
    if status == "pending":
        return await service.get_pending_interviews(user_id)
    if status == "completed":
        return await service.get_completed_interviews(user_id)
    return await service.get_user_interviews(user_id)


@router.get("/users/{user_id}/interviews/latest", response_model=List[InterviewDefinition])
async def list_latest_interviews(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    service: InterviewGenerationService = Depends(get_interview_service)
):
    """Finalized interviews from other users."""
    return await service.get_latest_interviews(user_id, limit)
