from fastapi import APIRouter, FastAPI, HTTPException, Request, Depends, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import structlog
import time
from contextlib import asynccontextmanager
from typing import Optional

from errors import PaymentError
from models import (
    AccountListResponse,
    AccountSnapshot,
    ErrorResponse,
    HealthResponse,
    TransactionRecord,
    TransactionResponse,
)
from services import TransactionService, get_transaction_service
from config import Settings, configure_logging, get_settings

logger = structlog.get_logger()

router = APIRouter()


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Payments Engine API")
    yield
    # Shutdown
    logger.info(
        "Shutting down Payments Engine API",
        accounts_count=await app.state.service.get_accounts_count()
    )


# Dependency injection
def get_service(request: Request) -> TransactionService:
    return request.app.state.service


# Health check endpoint
@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health and get ledger statistics"
)
async def health_check(service: TransactionService = Depends(get_service)):
    return HealthResponse(
        status="healthy",
        accounts_count=await service.get_accounts_count(),
        transactions_applied=service.applied_count,
        transactions_rejected=service.rejected_count
    )


def transactions_router(limiter: Limiter, settings: Settings) -> APIRouter:
    """Build the transaction endpoint, rate limited by `limiter`."""
    transactions = APIRouter()

    # Main transaction endpoint
    @transactions.post(
        "/transactions",
        response_model=TransactionResponse,
        status_code=status.HTTP_200_OK,
        summary="Apply Transaction",
        description="Apply a deposit, withdrawal, dispute, resolve or chargeback to the ledger",
        responses={
            200: {"description": "Transaction applied"},
            400: {"description": "Insufficient funds or invalid transaction"},
            404: {"description": "Unknown client or unknown deposit"},
            409: {"description": "Client account is locked"},
            422: {"description": "Malformed transaction record"},
            429: {"description": "Rate limit exceeded"},
            500: {"description": "Internal server error"}
        }
    )
    @limiter.limit(f"{settings.rate_limit_per_minute}/minute")
    async def create_transaction(
        request: Request,
        record: TransactionRecord,
        service: TransactionService = Depends(get_service)
    ):
        logger.info(
            "Transaction request received",
            type=record.type.value,
            client=record.client,
            tx=record.tx
        )
        return await service.process_transaction(record)

    return transactions


@router.get(
    "/accounts",
    response_model=AccountListResponse,
    summary="List Accounts",
    description="Snapshot of every client account, ordered by client id"
)
async def list_accounts(service: TransactionService = Depends(get_service)):
    return AccountListResponse(accounts=await service.list_accounts())


@router.get(
    "/accounts/{client}",
    response_model=AccountSnapshot,
    summary="Get Account",
    responses={404: {"description": "Account not found"}}
)
async def get_account(client: int, service: TransactionService = Depends(get_service)):
    account = await service.get_account(client)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


# Root endpoint
@router.get("/", include_in_schema=False)
async def root():
    return {"message": "Toy Payments Engine API", "docs": "/docs"}


async def payment_error_handler(request: Request, exc: PaymentError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.message,
            error_code=exc.error_code
        ).model_dump(mode="json")
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=f"HTTP_{exc.status_code}"
        ).model_dump(mode="json")
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            error_code="INTERNAL_ERROR"
        ).model_dump(mode="json")
    )


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[TransactionService] = None
) -> FastAPI:
    """Build an API instance that owns its own ledger."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Ledger of client accounts driven by deposits, withdrawals and disputes",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.service = service or get_transaction_service()

    # Add rate limiting
    limiter = Limiter(key_func=get_remote_address, enabled=settings.enable_rate_limit)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(PaymentError, payment_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        logger.info(
            "Request started",
            method=request.method,
            url=str(request.url),
            client_ip=request.client.host if request.client else None
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            "Request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            process_time=round(process_time, 4)
        )

        return response

    app.include_router(transactions_router(limiter, settings))
    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
