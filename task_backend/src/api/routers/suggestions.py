from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import get_current_user_id
from ..dependencies import Services, get_services
from ..schemas import SuggestionRequest, SuggestionResponse

router = APIRouter(
    prefix="/api/suggestions",
    tags=["suggestions"],
)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=SuggestionResponse,
    summary="Suggest Follow-up Tasks",
    description=(
        "Return up to three follow-up tasks for the given task text. Provider "
        "failures never surface as errors; a fallback list is returned instead."
    ),
    responses={
        200: {"description": "Suggestions (possibly empty)"},
        400: {"description": "Missing or empty task text"},
        401: {"description": "Missing or invalid session"},
    },
)
def suggest(
    payload: SuggestionRequest,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> SuggestionResponse:
    """
    Plain (non-async) handler: FastAPI runs it in the worker threadpool, so the
    blocking provider call does not hold up other requests.
    """
    return SuggestionResponse(suggestions=services.suggestions.suggest(payload.task))
