"""FastAPI routes for authentication, provider registry and discovery."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from infernet_core import __version__
from infernet_core.auth.challenges import ChallengeIssuer
from infernet_core.auth.session import AuthSession
from infernet_core.config import get_settings
from infernet_core.db.client import DatabaseClient
from infernet_core.discovery.engine import DiscoveryEngine
from infernet_core.exceptions import (
    ChallengeConsumed,
    ChallengeExpired,
    ChallengeMismatch,
    InfernetError,
    InvalidConfiguration,
    InvalidIdentity,
    NotFound,
    SignatureMismatch,
    UnknownChallenge,
)
from infernet_core.models.identity import (
    AuthRecord,
    ChallengeRequest,
    ChallengeResponse,
    SignedEvent,
)
from infernet_core.models.provider import (
    DiscoveryRequest,
    Page,
    ProviderRecord,
    ProviderRegistration,
    ProviderStatus,
    ReputationChange,
    ReputationDelta,
    StatusUpdate,
)
from infernet_core.registry.provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)

router = APIRouter()

# Dependency injection
_db_client: DatabaseClient | None = None
_registry: ProviderRegistry | None = None
_auth_session: AuthSession | None = None
_discovery: DiscoveryEngine | None = None

_STATUS_BY_ERROR: dict[type[InfernetError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    UnknownChallenge: status.HTTP_404_NOT_FOUND,
    InvalidIdentity: status.HTTP_400_BAD_REQUEST,
    InvalidConfiguration: status.HTTP_400_BAD_REQUEST,
    SignatureMismatch: status.HTTP_401_UNAUTHORIZED,
    ChallengeMismatch: status.HTTP_401_UNAUTHORIZED,
    ChallengeExpired: status.HTTP_401_UNAUTHORIZED,
    ChallengeConsumed: status.HTTP_409_CONFLICT,
}


def to_http_exception(error: InfernetError) -> HTTPException:
    """Translate a core error into an HTTP error response."""
    code = _STATUS_BY_ERROR.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=str(error))


def get_db_client() -> DatabaseClient | None:
    """Get or create database client instance (None when Supabase is not configured)."""
    global _db_client
    if _db_client is None and get_settings().use_supabase:
        _db_client = DatabaseClient()
    return _db_client


def get_registry() -> ProviderRegistry:
    """Get or create provider registry instance."""
    global _registry
    if _registry is None:
        settings = get_settings()
        _registry = ProviderRegistry(
            store=get_db_client(),
            heartbeat_timeout=settings.provider_heartbeat_timeout,
            default_reputation=settings.default_provider_reputation,
        )
    return _registry


def get_auth_session() -> AuthSession:
    """Get or create auth session instance."""
    global _auth_session
    if _auth_session is None:
        settings = get_settings()
        _auth_session = AuthSession(
            server_public_key=settings.server_public_key,
            issuer=ChallengeIssuer(
                sweep_every=settings.challenge_sweep_every,
                consumed_retention=settings.challenge_consumed_retention,
            ),
            records=get_db_client(),
            default_ttl=settings.challenge_ttl_seconds,
            sweep_every=settings.challenge_sweep_every,
        )
    return _auth_session


def get_discovery() -> DiscoveryEngine:
    """Get or create discovery engine instance."""
    global _discovery
    if _discovery is None:
        _discovery = DiscoveryEngine(
            registry=get_registry(),
            default_limit=get_settings().discovery_default_limit,
        )
    return _discovery


Registry = Annotated[ProviderRegistry, Depends(get_registry)]
Session = Annotated[AuthSession, Depends(get_auth_session)]
Discovery = Annotated[DiscoveryEngine, Depends(get_discovery)]


@router.get("/health")
async def health(registry: Registry) -> dict:
    """Liveness check with registry statistics and database health."""
    result = {
        "status": "healthy",
        "version": __version__,
        "registry": registry.stats(),
    }

    db = get_db_client()
    if db is not None:
        db_health = db.health_check()
        result["database"] = db_health
        if not db_health["healthy"]:
            logger.error(f"Database unhealthy: {db_health['error']}")
            result["status"] = "degraded"

    return result


# -----------------------------------------------------------------------------
# Authentication endpoints
# -----------------------------------------------------------------------------


@router.post("/auth/challenge", response_model=ChallengeResponse)
async def create_challenge(request: ChallengeRequest, session: Session) -> ChallengeResponse:
    """Issue a challenge for a public key.

    The client signs the returned event template (e.g. through a NIP-07
    browser extension) and submits it to ``/auth/verify``.
    """
    try:
        challenge = session.begin(request.public_key, request.ttl_seconds)
    except InfernetError as e:
        raise to_http_exception(e) from e
    return ChallengeResponse(challenge=challenge, event=challenge.to_unsigned_event())


@router.post("/auth/verify", response_model=AuthRecord)
async def verify_challenge(event: SignedEvent, session: Session) -> AuthRecord:
    """Verify a signed challenge response and return the auth record."""
    try:
        return session.submit(event)
    except InfernetError as e:
        raise to_http_exception(e) from e


# -----------------------------------------------------------------------------
# Provider endpoints
# -----------------------------------------------------------------------------


@router.get("/providers", response_model=Page)
async def list_providers(
    registry: Registry,
    page: int = 1,
    page_size: int = 20,
    provider_status: Annotated[ProviderStatus | None, Query(alias="status")] = None,
) -> Page:
    """List providers in registration order, optionally filtered by status."""
    try:
        return registry.list(page, page_size, status=provider_status)
    except InfernetError as e:
        raise to_http_exception(e) from e


@router.post("/providers", response_model=ProviderRecord, status_code=status.HTTP_201_CREATED)
async def register_provider(data: ProviderRegistration, registry: Registry) -> ProviderRecord:
    """Register a provider (or refresh an existing registration)."""
    return registry.register(data)


@router.get("/providers/{provider_id}", response_model=ProviderRecord)
async def get_provider(provider_id: str, registry: Registry) -> ProviderRecord:
    try:
        return registry.get(provider_id)
    except InfernetError as e:
        raise to_http_exception(e) from e


@router.delete("/providers/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deregister_provider(provider_id: str, registry: Registry) -> None:
    if not registry.deregister(provider_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider {provider_id} not found",
        )


@router.put("/providers/{provider_id}/status", response_model=ProviderRecord)
async def update_provider_status(
    provider_id: str,
    data: StatusUpdate,
    registry: Registry,
) -> ProviderRecord:
    try:
        return registry.update_status(provider_id, data.status)
    except InfernetError as e:
        raise to_http_exception(e) from e


@router.post("/providers/{provider_id}/heartbeat", response_model=ProviderRecord)
async def provider_heartbeat(
    provider_id: str,
    registry: Registry,
    data: StatusUpdate | None = None,
) -> ProviderRecord:
    try:
        return registry.heartbeat(provider_id, data.status if data else None)
    except InfernetError as e:
        raise to_http_exception(e) from e


@router.post("/providers/{provider_id}/reputation", response_model=ProviderRecord)
async def apply_reputation(
    provider_id: str,
    data: ReputationDelta,
    registry: Registry,
) -> ProviderRecord:
    """Apply a reputation delta reported by the settlement process."""
    try:
        return registry.apply_reputation_delta(
            provider_id, data.delta, reason=data.reason, job_id=data.job_id
        )
    except InfernetError as e:
        raise to_http_exception(e) from e


@router.get("/providers/{provider_id}/reputation", response_model=list[ReputationChange])
async def reputation_history(provider_id: str, registry: Registry) -> list[ReputationChange]:
    try:
        return registry.reputation_history(provider_id)
    except InfernetError as e:
        raise to_http_exception(e) from e


# -----------------------------------------------------------------------------
# Discovery
# -----------------------------------------------------------------------------


@router.post("/discover", response_model=list[ProviderRecord])
async def discover(request: DiscoveryRequest, discovery: Discovery) -> list[ProviderRecord]:
    """Rank available providers for a set of requirements."""
    return discovery.discover(request.requirements, exclude=set(request.exclude))
