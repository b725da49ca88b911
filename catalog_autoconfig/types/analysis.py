"""Models produced by the pattern / fingerprint engine."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_autoconfig.types.enums import PatternType


class SiteFingerprint(BaseModel):
    """Structural signature of a site.

    Attributes:
        technologies: Deduplicated, sorted technology tags
        api_signatures: Normalized, sorted endpoint paths
        architecture: Coarse architecture label
        hash: Deterministic hash over technologies and api_signatures
    """

    model_config = ConfigDict(frozen=True)

    technologies: List[str] = Field(default_factory=list, description="Technology tags")
    api_signatures: List[str] = Field(default_factory=list, description="Endpoint signatures")
    architecture: str = Field(..., description="Architecture label")
    hash: str = Field(..., description="Fingerprint hash")


class PatternMatch(BaseModel):
    """One scored piece of structural evidence."""

    model_config = ConfigDict(frozen=True)

    type: PatternType = Field(..., description="Pattern type")
    value: str = Field(..., description="Matched value (endpoint, host, label)")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence in [0, 1]")
    evidence: Optional[str] = Field(default=None, description="Why this matched")


class AnalysisResult(BaseModel):
    """Terminal output of the pattern engine.

    Example:
        >>> result = engine.analyze(profile)
        >>> best = result.best(PatternType.SEARCH_ENDPOINT)
        >>> if best:
        ...     print(best.value, best.confidence)
    """

    model_config = ConfigDict(frozen=True)

    fingerprint: SiteFingerprint
    patterns: List[PatternMatch] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    overall_confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    def patterns_of(self, pattern_type: PatternType) -> List[PatternMatch]:
        """All matches of one type, highest confidence first."""
        matches = [p for p in self.patterns if p.type == pattern_type]
        return sorted(matches, key=lambda p: p.confidence, reverse=True)

    def best(self, pattern_type: PatternType) -> Optional[PatternMatch]:
        """Highest-confidence match of one type, or None."""
        matches = self.patterns_of(pattern_type)
        return matches[0] if matches else None
