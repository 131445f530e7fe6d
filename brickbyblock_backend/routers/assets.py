from fastapi import APIRouter, UploadFile, File, Form, Depends, status
from typing import List
import logging

from ..dependencies import get_asset_indexer, get_transaction_builder
from ..models.asset_models import AssetRecord, BidResponse
from ..models.transaction_models import (
    AcceptBidRequest,
    BidRequest,
    ErrorResponse,
    ListRequest,
    ListResponse,
    TransactionResponse,
)
from ..routers.auth import get_current_active_user
from ..services.indexer_service import AssetIndexer
from ..services.transaction_service import TransactionBuilder

router = APIRouter(
    prefix="/api/assets",
    tags=["Assets"],
)

logger = logging.getLogger(__name__)

_server_error = {status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse}}
_protected_errors = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
    **_server_error,
}


# --- Public routes ---

@router.get("", response_model=List[AssetRecord], responses=_server_error)
async def list_assets(indexer: AssetIndexer = Depends(get_asset_indexer)):
    """
    Retrieves every minted asset with its metadata, most recently minted first.
    Assets whose metadata cannot be fetched are left out of the listing.
    """
    assets = await indexer.list_assets()
    logger.info(f"Returning {len(assets)} assets")
    return assets


@router.get("/{token_id}", response_model=AssetRecord, responses=_server_error)
async def get_asset(token_id: str, indexer: AssetIndexer = Depends(get_asset_indexer)):
    """Retrieves owner, metadata and content address for a single token."""
    return await indexer.get_asset(token_id)


@router.get("/{token_id}/bids", response_model=List[BidResponse], responses=_server_error)
async def get_bids(token_id: str, indexer: AssetIndexer = Depends(get_asset_indexer)):
    """Retrieves the active bids for a token, amounts in ether."""
    bids = await indexer.get_bids(token_id)
    return [BidResponse(bidder=bid.bidder, amount=bid.amount) for bid in bids]


# --- Protected routes ---

@router.post(
    "/mint-request",
    response_model=TransactionResponse,
    response_model_exclude_none=True,
    responses=_protected_errors,
)
async def mint_request(
    name: str | None = Form(None),
    description: str | None = Form(None),
    price: str | None = Form(None),
    file: UploadFile | None = File(None),
    current_user_address: str = Depends(get_current_active_user),
    builder: TransactionBuilder = Depends(get_transaction_builder),
):
    """
    Pins the image and its metadata, then returns the unsigned mint
    transaction for the authenticated wallet.

    - **name**, **description**, **price**: Asset details stored in the metadata.
    - **file**: The asset image.
    """
    logger.info(f"Authenticated user {current_user_address} requesting mint for '{name}'")
    image = await file.read() if file is not None else None
    unsigned_tx = await builder.build_mint(
        owner=current_user_address,
        name=name,
        description=description,
        price=price,
        image=image,
        image_filename=file.filename if file is not None else None,
    )
    return TransactionResponse(unsignedTx=unsigned_tx)


@router.post(
    "/list-request",
    response_model=ListResponse,
    response_model_exclude_none=True,
    responses=_protected_errors,
)
def list_request(
    listing: ListRequest,
    current_user_address: str = Depends(get_current_active_user),
    builder: TransactionBuilder = Depends(get_transaction_builder),
):
    """
    Returns the approve and listAsset transactions needed to list a token.
    The approve transaction must be mined before the list transaction.
    """
    approve_tx, list_tx = builder.build_list(current_user_address, listing.tokenId)
    return ListResponse(approveTx=approve_tx, listTx=list_tx)


@router.post(
    "/create-bid-transaction",
    response_model=TransactionResponse,
    response_model_exclude_none=True,
    responses=_protected_errors,
)
def create_bid_transaction(
    bid_request: BidRequest,
    current_user_address: str = Depends(get_current_active_user),
    builder: TransactionBuilder = Depends(get_transaction_builder),
):
    """Returns an unsigned makeBid transaction carrying the bid as value."""
    unsigned_tx = builder.build_bid(current_user_address, bid_request.tokenId, bid_request.bidAmount)
    return TransactionResponse(unsignedTx=unsigned_tx)


@router.post(
    "/accept-bid",
    response_model=TransactionResponse,
    response_model_exclude_none=True,
    responses=_protected_errors,
)
def accept_bid(
    accept_request: AcceptBidRequest,
    current_user_address: str = Depends(get_current_active_user),
    builder: TransactionBuilder = Depends(get_transaction_builder),
):
    """Returns an unsigned acceptBid transaction for the token's owner to sign."""
    unsigned_tx = builder.build_accept_bid(
        current_user_address, accept_request.tokenId, accept_request.buyerAddress
    )
    return TransactionResponse(unsignedTx=unsigned_tx)
