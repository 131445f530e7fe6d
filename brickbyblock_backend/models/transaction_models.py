from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .asset_models import MAX_TOKEN_ID


class ErrorResponse(BaseModel):
    detail: str


class UnsignedTransaction(BaseModel):
    """An encoded contract call for the wallet to sign and broadcast."""

    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(..., description="Contract address being called.")
    data: str = Field(..., description="ABI-encoded call data.")
    from_: str | None = Field(None, alias="from", description="Address expected to sign the transaction.")
    value: str | None = Field(None, description="Wei to send, as a 0x-prefixed hex quantity.")
    chainId: int | None = None


class ListRequest(BaseModel):
    tokenId: int = Field(..., ge=0, le=MAX_TOKEN_ID, validation_alias=AliasChoices("tokenId", "token_id"))


class BidRequest(BaseModel):
    tokenId: int = Field(..., ge=0, le=MAX_TOKEN_ID, validation_alias=AliasChoices("tokenId", "token_id"))
    bidAmount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=18,
        validation_alias=AliasChoices("bidAmount", "bid_amount"),
        description="Bid in ether, e.g. '1.5'.",
    )


class AcceptBidRequest(BaseModel):
    tokenId: int = Field(..., ge=0, le=MAX_TOKEN_ID, validation_alias=AliasChoices("tokenId", "token_id"))
    buyerAddress: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("buyerAddress", "buyer_address")
    )


class TransactionResponse(BaseModel):
    unsignedTx: UnsignedTransaction


class ListResponse(BaseModel):
    approveTx: UnsignedTransaction
    listTx: UnsignedTransaction
