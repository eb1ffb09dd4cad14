"""
FastAPI application for the election API.

Project: Single-Election Voting System
Description: REST backend for candidates, votes, results and publication settings
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from voting_services.election_api.auth import (
    Authenticator,
    ConfiguredAdminAuthenticator,
    create_access_token,
    decode_access_token,
)
from voting_services.election_api.config import settings
from voting_services.election_api.database import database
from voting_services.election_api.errors import (
    ElectionError,
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthenticationError,
    InternalError,
)
from voting_services.election_api.models import (
    CandidateRequest,
    VoteRequest,
    PublishRequest,
    LoginRequest,
    CandidateResponse,
    CandidateCreatedResponse,
    CandidatesResponse,
    MessageResponse,
    VoteCreatedResponse,
    ResetResponse,
    ResultItem,
    ResultsResponse,
    VoterItem,
    VotersResponse,
    VoterCheckResponse,
    PublishResponse,
    SettingsPayload,
    SettingsResponse,
    LoginResponse,
    HealthResponse,
    ErrorResponse,
)
from voting_services.election_api.service import ElectionService

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Prometheus metrics
vote_counter = Counter(
    "votes_cast_total",
    "Total number of votes cast"
)
vote_errors = Counter(
    "vote_errors_total",
    "Total number of rejected vote submissions",
    ["error_type"]
)
request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"]
)

# Rate limiter
limiter = Limiter(key_func=get_remote_address)

# HTTP status for each error kind; subclasses resolve through the MRO
ERROR_STATUS_CODES = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

HTTP_ERROR_NAMES = {
    status.HTTP_404_NOT_FOUND: "NotFoundError",
    status.HTTP_405_METHOD_NOT_ALLOWED: "MethodNotAllowedError",
}

authenticator = ConfiguredAdminAuthenticator.from_settings()
bearer_scheme = HTTPBearer(auto_error=False)


def get_service() -> ElectionService:
    """Election service bound to the global database."""
    return ElectionService(database)


def get_authenticator() -> Authenticator:
    """Admin credential checker."""
    return authenticator


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    """Reject the request unless it carries a valid admin bearer token."""
    if credentials is None:
        raise AuthenticationError("Admin authentication required")

    subject = decode_access_token(credentials.credentials)
    if subject is None:
        raise AuthenticationError("Invalid or expired admin token")
    return subject


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info(f"Starting {settings.SERVICE_NAME} service...")

    try:
        await database.initialize()
        await get_service().initialize_defaults(settings.DEFAULT_CANDIDATES)
        logger.info(f"{settings.SERVICE_NAME} started successfully")

    except Exception as e:
        logger.error(f"Failed to start {settings.SERVICE_NAME}: {e}")
        raise

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.SERVICE_NAME} service...")
    await database.close()
    logger.info(f"{settings.SERVICE_NAME} shut down successfully")


# Create FastAPI app
app = FastAPI(
    title="Election API",
    description="API for managing candidates, casting votes and publishing results",
    version=settings.API_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump()
    )


def _status_for(exc: ElectionError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(ElectionError)
async def election_error_handler(request: Request, exc: ElectionError) -> JSONResponse:
    """Map election errors to status codes; internal details are withheld."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"Internal error on {request.method} {request.url.path}: {exc.message}")
        return _error_response(status_code, "InternalError", "Internal server error")
    return _error_response(status_code, type(exc).__name__, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON, wrong types and bad path parameters are client errors."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    )
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "ValidationError",
        f"Invalid request: {problems}" if problems else "Invalid request"
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes and disallowed methods get the same error body as everything else."""
    response = _error_response(
        exc.status_code,
        HTTP_ERROR_NAMES.get(exc.status_code, "HTTPError"),
        str(exc.detail)
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalError",
        "Internal server error"
    )


@app.middleware("http")
async def prometheus_middleware(request: Request, call_next):
    """Middleware to track request duration."""
    start = time.perf_counter()
    response = await call_next(request)

    route = request.scope.get("route")
    request_duration.labels(
        method=request.method,
        endpoint=getattr(route, "path", request.url.path),
        status=response.status_code
    ).observe(time.perf_counter() - start)

    return response


router = APIRouter(prefix=settings.API_PREFIX)

ADMIN_ERRORS = {401: {"model": ErrorResponse, "description": "Admin authentication required"}}


# ═══════════════════════════════════════════════════════════════════
# CANDIDATE ENDPOINTS
# ═══════════════════════════════════════════════════════════════════

@router.get("/candidates", response_model=CandidatesResponse, tags=["Candidates"])
async def list_candidates(service: ElectionService = Depends(get_service)) -> CandidatesResponse:
    """Get all candidates ordered by position."""
    candidates = await service.list_candidates()
    return CandidatesResponse(
        candidates=[CandidateResponse(**c.to_dict()) for c in candidates]
    )


@router.post(
    "/candidates",
    response_model=CandidateCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Candidates"],
    responses={
        400: {"model": ErrorResponse, "description": "Candidate name is required"},
        **ADMIN_ERRORS
    }
)
async def add_candidate(
    body: CandidateRequest,
    service: ElectionService = Depends(get_service),
    admin: str = Depends(require_admin)
) -> CandidateCreatedResponse:
    """
    Add a candidate after the current last position.

    - **name**: Candidate display name (required, trimmed)
    """
    candidate = await service.add_candidate(body.name)
    return CandidateCreatedResponse(**candidate.to_dict())


@router.put(
    "/candidates/{candidate_id}",
    response_model=MessageResponse,
    tags=["Candidates"],
    responses={
        400: {"model": ErrorResponse, "description": "Candidate name is required"},
        404: {"model": ErrorResponse, "description": "Candidate not found"},
        **ADMIN_ERRORS
    }
)
async def update_candidate(
    candidate_id: int,
    body: CandidateRequest,
    service: ElectionService = Depends(get_service),
    admin: str = Depends(require_admin)
) -> MessageResponse:
    """Rename a candidate. Position and votes are unchanged."""
    await service.update_candidate_name(candidate_id, body.name)
    return MessageResponse(message="Candidate updated successfully")


@router.delete(
    "/candidates/{candidate_id}",
    response_model=MessageResponse,
    tags=["Candidates"],
    responses={
        400: {"model": ErrorResponse, "description": "Candidate has votes"},
        404: {"model": ErrorResponse, "description": "Candidate not found"},
        **ADMIN_ERRORS
    }
)
async def delete_candidate(
    candidate_id: int,
    service: ElectionService = Depends(get_service),
    admin: str = Depends(require_admin)
) -> MessageResponse:
    """Remove a candidate without votes; later positions move up by one."""
    await service.remove_candidate(candidate_id)
    return MessageResponse(message="Candidate deleted successfully")


# ═══════════════════════════════════════════════════════════════════
# VOTE ENDPOINTS
# ═══════════════════════════════════════════════════════════════════

@router.post(
    "/votes",
    response_model=VoteCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Votes"],
    responses={
        400: {"model": ErrorResponse, "description": "Missing fields or already voted"},
        404: {"model": ErrorResponse, "description": "Candidate not found"},
        429: {"description": "Rate limit exceeded"}
    }
)
@limiter.limit(settings.RATE_LIMIT)
async def cast_vote(
    request: Request,
    vote: VoteRequest,
    service: ElectionService = Depends(get_service)
) -> VoteCreatedResponse:
    """
    Cast a vote.

    - **voterName**: Voter name; one vote per name, compared case-insensitively
    - **candidateId**: Candidate identifier
    """
    try:
        stored = await service.cast_vote(vote.voterName, vote.candidateId)
    except ElectionError as e:
        vote_errors.labels(error_type=type(e).__name__).inc()
        raise

    vote_counter.inc()
    return VoteCreatedResponse(id=stored.id)


@router.delete(
    "/votes",
    response_model=ResetResponse,
    tags=["Votes"],
    responses=ADMIN_ERRORS
)
async def reset_votes(
    service: ElectionService = Depends(get_service),
    admin: str = Depends(require_admin)
) -> ResetResponse:
    """Delete all votes and unpublish results."""
    deleted = await service.reset_votes()
    return ResetResponse(deletedCount=deleted)


@router.get("/voters", response_model=VotersResponse, tags=["Votes"])
async def list_voters(service: ElectionService = Depends(get_service)) -> VotersResponse:
    """Get all voters with their chosen candidate, most recent first."""
    voters = await service.list_voters()
    return VotersResponse(voters=[VoterItem(**v.to_dict()) for v in voters])


@router.get("/voters/{name:path}/check", response_model=VoterCheckResponse, tags=["Votes"])
async def check_voter(name: str, service: ElectionService = Depends(get_service)) -> VoterCheckResponse:
    """Check whether a voter name (case-insensitive) has already voted."""
    return VoterCheckResponse(hasVoted=await service.has_voted(name))


# ═══════════════════════════════════════════════════════════════════
# RESULTS & SETTINGS ENDPOINTS
# ═══════════════════════════════════════════════════════════════════

@router.get("/results", response_model=ResultsResponse, tags=["Results"])
async def get_results(service: ElectionService = Depends(get_service)) -> ResultsResponse:
    """
    Get live results.

    Returns per-candidate counts and percentages ordered by position, the
    total, the winner (null when none or tied) and the tie flag.
    """
    tally = await service.tally()
    winner = ResultItem(**tally.winner.to_dict()) if tally.winner else None
    return ResultsResponse(
        results=[ResultItem(**r.to_dict()) for r in tally.results],
        totalVotes=tally.total_votes,
        winner=winner,
        tie=tally.tie
    )


@router.post(
    "/results/publish",
    response_model=PublishResponse,
    tags=["Results"],
    responses=ADMIN_ERRORS
)
async def publish_results(
    body: PublishRequest,
    service: ElectionService = Depends(get_service),
    admin: str = Depends(require_admin)
) -> PublishResponse:
    """Publish or unpublish results on the public view."""
    published = await service.set_results_published(body.publish)
    return PublishResponse(
        message="Results published successfully" if published else "Results unpublished successfully",
        published=published
    )


@router.get("/settings", response_model=SettingsResponse, tags=["Results"])
async def get_settings(service: ElectionService = Depends(get_service)) -> SettingsResponse:
    """Get the publication settings."""
    current = await service.get_settings()
    return SettingsResponse(settings=SettingsPayload(**current.to_dict()))


# ═══════════════════════════════════════════════════════════════════
# ADMIN ENDPOINTS
# ═══════════════════════════════════════════════════════════════════

@router.post(
    "/admin/login",
    response_model=LoginResponse,
    tags=["Admin"],
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}}
)
async def admin_login(
    body: LoginRequest,
    auth: Authenticator = Depends(get_authenticator)
) -> LoginResponse:
    """Exchange admin credentials for a bearer token."""
    if not auth.verify(body.username, body.password):
        logger.warning(f"Failed admin login for username={body.username!r}")
        raise AuthenticationError("Invalid credentials")

    logger.info(f"Admin logged in: {body.username}")
    return LoginResponse(token=create_access_token(body.username))


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    responses={
        503: {"model": HealthResponse, "description": "Service unhealthy"}
    }
)
async def health_check() -> HealthResponse:
    """Check health of the service and its database."""
    postgres_healthy = await database.check_health()
    services = {"postgresql": "connected" if postgres_healthy else "disconnected"}

    response = HealthResponse(
        status="healthy" if postgres_healthy else "unhealthy",
        services=services
    )

    return JSONResponse(
        status_code=status.HTTP_200_OK if postgres_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json")
    )


app.include_router(router)


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@app.get("/")
async def root():
    """Root endpoint with API information."""
    prefix = settings.API_PREFIX
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.API_VERSION,
        "status": "running",
        "endpoints": {
            "candidates": f"{prefix}/candidates",
            "votes": f"{prefix}/votes",
            "results": f"{prefix}/results",
            "voters": f"{prefix}/voters",
            "settings": f"{prefix}/settings",
            "admin_login": f"{prefix}/admin/login",
            "health": f"{prefix}/health",
            "metrics": "/metrics"
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "voting_services.election_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
