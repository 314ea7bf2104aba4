from dataclasses import dataclass
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

RecommendationLevel = Literal["HIGH", "MEDIUM", "LOW"]


@dataclass
class RawExtraction:
    """Text fields of one listing, straight from the page."""
    title: str
    current_price_text: str
    original_price_text: Optional[str] = None
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    availability: str = "Unknown"


class Deal(BaseModel):
    title: str
    original_price: Optional[float] = None
    current_price: float = Field(gt=0)
    # Reported discount, may diverge from the price-derived one
    discount_percentage: int = Field(ge=0, le=100)
    url: str
    image: Optional[str] = None
    site: str
    availability: str = "Unknown"


class FilteredDeal(Deal):
    confidence_score: int = Field(ge=0, le=100)
    pricing_glitch_probability: float = Field(ge=0, le=100)
    filtering_reason: str
    validation_flags: List[str] = Field(default_factory=list)
    ai_analysis: str = ""
    suspicious_factors: List[str] = Field(default_factory=list)
    recommendation_level: RecommendationLevel = "MEDIUM"
