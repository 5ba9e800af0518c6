"""Contracts for platform builds and production deploys."""

from pydantic import BaseModel, Field
from typing import Dict, Optional

from .project_contracts import Platform


class PlatformBuildResult(BaseModel):
    """Result of one platform's build-and-verify pipeline."""
    platform: Platform
    success: bool
    artifact_ref: Optional[str] = Field(None, description="Built artifact path (bundle, APK, ...)")
    screenshot_ref: Optional[str] = Field(None, description="Path of the captured visual evidence")
    preview_url: Optional[str] = Field(None, description="Throwaway preview URL, if any")
    error: Optional[str] = None


class MultiPlatformResult(BaseModel):
    """Aggregate over every requested platform. There is no partial success."""
    per_platform: Dict[Platform, PlatformBuildResult] = Field(default_factory=dict)
    overall_success: bool

    @classmethod
    def aggregate(cls, results: Dict[Platform, PlatformBuildResult]) -> "MultiPlatformResult":
        return cls(
            per_platform=results,
            overall_success=bool(results) and all(r.success for r in results.values()),
        )

    def failures(self) -> Dict[Platform, PlatformBuildResult]:
        return {p: r for p, r in self.per_platform.items() if not r.success}


class PlatformDeployResult(BaseModel):
    """Result of one platform's production push."""
    platform: Platform
    success: bool
    url: Optional[str] = None
    error: Optional[str] = None


class DeploymentResult(BaseModel):
    """Outcome of a deploy request (approval or payment live switch)."""
    success: bool
    url: Optional[str] = Field(None, description="Primary production URL")
    urls: Dict[Platform, str] = Field(default_factory=dict)
    per_platform: Dict[Platform, PlatformDeployResult] = Field(default_factory=dict)
    error: Optional[str] = None


class RejectionResult(BaseModel):
    """Outcome of a rejection request."""
    success: bool
    order_id: str
    reason: str = ""
