from .data_access import ScopedRepository, ENTITY_MODELS
from .data_client import ClinicDataClient
from .profile_service import ClinicContext, ProfileResolver, ProfileState, ResolvedProfile

# media_service imports Pillow; import it directly where needed.

__all__ = [
    "ScopedRepository",
    "ENTITY_MODELS",
    "ClinicDataClient",
    "ClinicContext",
    "ProfileResolver",
    "ProfileState",
    "ResolvedProfile",
]
