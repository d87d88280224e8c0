"""Provider registry and discovery models."""

from datetime import datetime, UTC
from enum import Enum
from secrets import token_hex

from pydantic import BaseModel, Field

REPUTATION_MIN = 0.0
REPUTATION_MAX = 100.0


class ProviderStatus(str, Enum):
    """Provider availability."""

    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


class ProviderCapabilities(BaseModel):
    """Hardware a provider offers."""

    vram: float = 0  # GB
    cuda_cores: int = 0
    gpu_model: str | None = None
    bandwidth: float = 0  # Mbps


class ProviderRecord(BaseModel):
    """A GPU provider known to the registry."""

    id: str
    public_key: str | None = None
    endpoint: str | None = None
    capabilities: ProviderCapabilities = Field(default_factory=ProviderCapabilities)
    status: ProviderStatus = ProviderStatus.AVAILABLE
    reputation: float = Field(default=50.0, ge=REPUTATION_MIN, le=REPUTATION_MAX)
    price: float = Field(default=0.0, ge=0)
    registered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_seen: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ProviderRegistration(BaseModel):
    """Registration request from a provider node."""

    id: str = Field(default_factory=lambda: f"provider_{token_hex(8)}")
    public_key: str | None = None
    endpoint: str | None = None
    capabilities: ProviderCapabilities = Field(default_factory=ProviderCapabilities)
    price: float = Field(default=0.0, ge=0)
    reputation: float | None = Field(default=None, ge=REPUTATION_MIN, le=REPUTATION_MAX)


class StatusUpdate(BaseModel):
    """Request to change provider status."""

    status: ProviderStatus


class ReputationDelta(BaseModel):
    """Reputation adjustment from an external settlement process."""

    delta: float
    reason: str | None = None
    job_id: str | None = None


class ReputationChange(BaseModel):
    """One applied reputation adjustment."""

    provider_id: str
    old_score: float
    new_score: float
    delta: float
    reason: str | None = None
    job_id: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class CapabilityQuery(BaseModel):
    """Minimum requirements used to filter providers.

    Unset fields are not filtered on. Status defaults to AVAILABLE.
    """

    min_vram: float | None = Field(default=None, ge=0)
    min_cuda_cores: int | None = Field(default=None, ge=0)
    gpu_model: str | None = None
    status: ProviderStatus | None = ProviderStatus.AVAILABLE
    min_reputation: float | None = Field(default=None, ge=REPUTATION_MIN, le=REPUTATION_MAX)
    max_price: float | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, gt=0)

    def matches(self, provider: ProviderRecord) -> bool:
        """Check every set predicate against a provider."""
        caps = provider.capabilities
        if self.status is not None and provider.status != self.status:
            return False
        if self.min_vram is not None and caps.vram < self.min_vram:
            return False
        if self.min_cuda_cores is not None and caps.cuda_cores < self.min_cuda_cores:
            return False
        if self.gpu_model and (caps.gpu_model is None or self.gpu_model not in caps.gpu_model):
            return False
        if self.min_reputation is not None and provider.reputation < self.min_reputation:
            return False
        if self.max_price is not None and provider.price > self.max_price:
            return False
        return True


class DiscoveryRequest(BaseModel):
    """Discovery request: requirements plus request-scoped exclusions."""

    requirements: CapabilityQuery = Field(default_factory=CapabilityQuery)
    exclude: list[str] = Field(default_factory=list)


class Page(BaseModel):
    """One page of providers in registration order."""

    items: list[ProviderRecord]
    page: int
    page_size: int
    total_items: int
    total_pages: int
