from pydantic import BaseModel, Field

# Token ids are uint256 on chain
MAX_TOKEN_ID = 2 ** 256 - 1


class AssetRecord(BaseModel):
    id: str = Field(..., description="Token id, or the metadata CID when indexed from pinned metadata.")
    owner: str | None = Field(None, description="Owner address. Read from the chain when indexed from events.")
    name: str | None = Field(None, description="Display name from metadata (untrusted).")
    description: str | None = Field(None, description="Description from metadata (untrusted).")
    imagePath: str | None = Field(None, description="Gateway URL of the asset image.")
    price: str | None = Field(None, description="Price recorded in metadata at mint time, as a decimal string.")
    contentAddress: str | None = Field(None, description="CID of the asset's metadata document.")


class Bid(BaseModel):
    assetId: str
    bidder: str
    amount: str = Field(..., description="Bid amount in ether, as a decimal string.")


class BidResponse(BaseModel):
    bidder: str
    amount: str
