"""Response DTOs for API endpoints."""

from pydantic import BaseModel, Field


class ChatResponse(BaseModel):
    """Response DTO for the chat endpoint."""

    message: str = Field(..., description="The generated or cached report")
    model: str | None = Field(None, description="Generator model, if known")
    cached: bool = Field(..., description="Whether the report was served from cache")
    success: bool = Field(True, description="Whether the operation succeeded")


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    backend: str = Field(..., description="Active cache backend")
    total: int = Field(..., description="Total number of stored entries", ge=0)
    expired: int = Field(..., description="Entries past the retention window", ge=0)
    valid: int = Field(..., description="Entries still servable", ge=0)
    retention_seconds: int = Field(..., description="Retention window in seconds", ge=0)


class CacheClearResponse(BaseModel):
    """Response DTO for cache sweep and clear operations."""

    success: bool = Field(..., description="Whether the operation succeeded")
    deleted_count: int = Field(..., description="Number of entries removed", ge=0)
    message: str = Field(..., description="Human-readable status message")


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")
    backend: str = Field(..., description="Active cache backend")
