"""Quick action routes."""

from fastapi import APIRouter

from relaychat.schemas.chat import QuickActionRead
from relaychat.schemas.common import ApiResponse
from relaychat.services.quick_actions import QUICK_ACTIONS


router = APIRouter()


@router.get("/quick-actions", response_model=ApiResponse[list[QuickActionRead]])
def list_quick_actions() -> ApiResponse[list[QuickActionRead]]:
    return ApiResponse(
        data=[QuickActionRead(id=action.id, label=action.label, message=action.message) for action in QUICK_ACTIONS]
    )
