"""Contracts for the Six Eyes verification gates."""

from pydantic import BaseModel, Field
from typing import Any, Optional


class ValidationResult(BaseModel):
    """Outcome of a single gate."""
    passed: bool
    error: Optional[str] = Field(None, description="Why the gate failed")
    details: Optional[Any] = Field(None, description="Opaque diagnostics, e.g. compiler output")


class GateVerdict(BaseModel):
    """Structured answer required from every reasoning or vision call."""
    valid: bool = Field(..., description="True only if the artifact or screenshot is acceptable")
    reason: str = Field(default="", description="One or two sentences explaining the verdict")


class SixEyesResult(BaseModel):
    """Chained result of the three gates. A gate that did not run is None."""
    pattern_gate: ValidationResult
    compile_gate: Optional[ValidationResult] = None
    visual_gate: Optional[ValidationResult] = None
    overall_passed: bool

    def first_failure(self) -> Optional[tuple]:
        """Return (gate_name, result) for the gate that failed, if any."""
        for name in ("pattern_gate", "compile_gate", "visual_gate"):
            result = getattr(self, name)
            if result is not None and not result.passed:
                return name, result
        return None
