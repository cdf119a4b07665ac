from studiosync.cloud.client import (
    CloudClient, CloudDuplicateError, CloudError, CloudRequestError, CloudUnavailableError,
)
from studiosync.cloud.connectivity import Connectivity

__all__ = [
    "CloudClient", "CloudError", "CloudUnavailableError", "CloudRequestError",
    "CloudDuplicateError", "Connectivity",
]
