# solvo/auth/schemas.py
from typing import Dict

from services.scoring_engine.models import Principal

# The pipeline's principal doubles as the authenticated user of a request
AuthenticatedUser = Principal


# --- Tier definitions ---
# Lower numbers are lower tiers.
TIER_LEVELS: Dict[str, int] = {
    "free": 0,
    "premium": 20,
}

def get_tier_level(tier_name: str | None) -> int:
    """
    Returns the numerical level of a tier name.
    Returns -1 if the tier name is None or not found.
    """
    if tier_name is None:
        return -1
    return TIER_LEVELS.get(tier_name.lower(), -1)
