"""Protected endpoints for reading and replacing a user's dataset."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from macro_tracker.api.auth import require_user
from macro_tracker.domain.models import UserRecord  # noqa: TC001
from macro_tracker.domain.payloads import user_data_to_payload
from macro_tracker.domain.results import Err

if TYPE_CHECKING:
    from macro_tracker.containers import AppContainer

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/data")
def get_user_data(
    request: Request, user: UserRecord = Depends(require_user)
) -> dict[str, object]:
    """Return the caller's custom foods, entries, goals and calculator data."""
    container: AppContainer = request.app.state.container
    return user_data_to_payload(container.user_data_service.get(user.id))


@router.post("/data")
def save_user_data(
    request: Request,
    payload: dict[str, Any] = Body(...),
    user: UserRecord = Depends(require_user),
) -> dict[str, str]:
    """Replace the collections present in the payload."""
    container: AppContainer = request.app.state.container
    result = container.user_data_service.save(user.id, payload)
    if isinstance(result, Err):
        raise HTTPException(
            status_code=result.error.status_code, detail=result.error.message
        )
    return {"message": "Data saved successfully"}


@router.delete("/daily-entry/{entry_id}")
def delete_daily_entry(
    entry_id: str, request: Request, user: UserRecord = Depends(require_user)
) -> dict[str, str]:
    """Delete one of the caller's daily entries."""
    try:
        parsed_id = int(entry_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid entry ID"
        ) from None
    container: AppContainer = request.app.state.container
    if not container.user_data_service.delete_entry(user.id, parsed_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Entry not found or could not be deleted",
        )
    return {"message": "Entry deleted successfully"}
