import os
import sys

# Modules live flat under backend/ and import each other by bare name
BACKEND = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend"))
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

import pytest  # noqa: E402


@pytest.fixture
def balanced_allocation():
    from schemas import AssetAllocation

    return AssetAllocation(fixed_income=20, mutual_funds=30, stocks=30, cash=10, crypto=5, other=5)
