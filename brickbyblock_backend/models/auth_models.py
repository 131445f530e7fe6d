from pydantic import AliasChoices, BaseModel, Field


class ChallengeRequest(BaseModel):
    address: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("address", "walletAddress"),
        description="Wallet address requesting a challenge.",
    )


class ChallengeResponse(BaseModel):
    message: str = Field(..., description="Message the wallet must sign with personal_sign.")


class VerifyRequest(BaseModel):
    address: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("address", "walletAddress"),
        description="Wallet address that signed the challenge.",
    )
    signature: str = Field(..., min_length=1, description="The signature provided by the user's wallet.")


class VerifyResponse(BaseModel):
    token: str = Field(..., description="Bearer token for subsequent authenticated requests.")
    token_type: str = Field("bearer", description="Type of the token (always 'bearer').")
