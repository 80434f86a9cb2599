"""
Dating feature package.

Opt-in dating mode layered on group membership: profile storage, the
unlock status and the symmetric mutual-match filter used to decide who
sees `#date` events.
"""

from .api.router import router as dating_router  # noqa: F401
from .domain.models import DatingGender, DatingProfile, DatingProfileStatus  # noqa: F401
from .matching import get_profile_status, is_mutual_match  # noqa: F401
