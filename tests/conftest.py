import os
import sys
import tempfile

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
# Keep test runs out of the real log directory
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "deal_hunter_test_logs"))

import pytest

from models.deal import Deal, FilteredDeal


@pytest.fixture
def make_deal():
    def _make(**overrides):
        data = {
            "title": "Samsung 65 inch QLED Smart TV",
            "original_price": 1000.0,
            "current_price": 80.0,
            "discount_percentage": 92,
            "url": "https://www.amazon.com/dp/B0TEST",
            "image": "https://m.media-amazon.com/images/tv.jpg",
            "site": "Amazon",
            "availability": "In Stock",
        }
        data.update(overrides)
        return Deal(**data)
    return _make


@pytest.fixture
def make_filtered_deal(make_deal):
    def _make(**overrides):
        decision = {
            "confidence_score": 85,
            "pricing_glitch_probability": 20.0,
            "filtering_reason": "High discount deal (92.0% off)",
            "validation_flags": [],
            "ai_analysis": "Clearance pricing",
            "suspicious_factors": [],
            "recommendation_level": "HIGH",
        }
        for key in list(overrides):
            if key in decision:
                decision[key] = overrides.pop(key)
        return FilteredDeal(**make_deal(**overrides).model_dump(), **decision)
    return _make
