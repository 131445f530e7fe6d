from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging # Add logging config

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

from . import config
from .errors import MarketplaceError
# Import routers
from .routers import auth, assets, portfolio

logger = logging.getLogger(__name__)

app = FastAPI(
    title="BrickByBlock Marketplace Backend",
    description="Wallet authentication, asset indexing and unsigned transaction building for the BrickByBlock marketplace.",
    version="0.1.0"
)

# --- CORS Configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,  # Frontend origins that are allowed to make requests
    allow_credentials=True, # Allow authorization headers
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error Handling ---
@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    headers = None
    if exc.status_code >= 500:
        # Details stay in the server log
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}", exc_info=exc)
        detail = "Server error."
    else:
        logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
        detail = exc.message
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content={"detail": detail}, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    fields = sorted({".".join(str(part) for part in error.get("loc", ())[1:]) or "body" for error in errors})
    logger.info(f"Rejected request to {request.url.path}: invalid {fields}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": f"Missing or invalid fields: {', '.join(fields)}"},
    )


# Include routers
app.include_router(auth.router)
app.include_router(assets.router)
app.include_router(portfolio.router)


@app.get("/", tags=["Health Check"])
def read_root():
    """Root endpoint for health check."""
    return {"status": "ok", "message": "BrickByBlock backend is running."}


# --- Server Startup (for local development) ---
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("brickbyblock_backend.main:app", host="0.0.0.0", port=3001, reload=True)
