from typing import List

from pydantic import BaseModel, Field

from models.deal import RecommendationLevel


class AIVerdict(BaseModel):
    is_legitimate: bool = False
    confidence_score: float = Field(default=50, ge=0, le=100)
    pricing_glitch_probability: float = Field(default=0, ge=0, le=100)
    analysis: str = "No analysis provided"
    suspicious_factors: List[str] = Field(default_factory=list)
    recommendation: RecommendationLevel = "MEDIUM"
    provider: str = "unknown"
