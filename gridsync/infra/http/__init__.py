from .enrichment_client import ApiError, EnrichmentApiClient
from .enrichment_tasks import (
    ClientLinkEnrichmentTask,
    CoordinatesEnrichmentTask,
    HttpEnrichmentTask,
    ProfileEnrichmentTask,
    build_task,
)
from .url_utils import clean_profile_url

__all__ = [
    "ApiError",
    "EnrichmentApiClient",
    "HttpEnrichmentTask",
    "ProfileEnrichmentTask",
    "CoordinatesEnrichmentTask",
    "ClientLinkEnrichmentTask",
    "build_task",
    "clean_profile_url",
]
