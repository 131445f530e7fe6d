from fastapi import APIRouter, Depends, status
from typing import List
import logging

from ..dependencies import get_asset_indexer
from ..models.asset_models import AssetRecord
from ..models.transaction_models import ErrorResponse
from ..routers.auth import get_current_active_user
from ..services.indexer_service import AssetIndexer

router = APIRouter(
    prefix="/api/portfolio",
    tags=["Portfolio"],
)

logger = logging.getLogger(__name__)


@router.get(
    "/owned",
    response_model=List[AssetRecord],
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def get_owned_assets(
    current_user_address: str = Depends(get_current_active_user),
    indexer: AssetIndexer = Depends(get_asset_indexer),
):
    """
    Retrieves all assets owned by the currently authenticated wallet
    (based on the bearer token). Requires authentication.
    """
    logger.info(f"Received request to get portfolio for current user: {current_user_address}")
    return await indexer.get_owned(current_user_address)
