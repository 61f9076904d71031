"""Search provider bindings.

공개 API는 이 파일에서만 export합니다.
"""

from .client import ProviderClient
from .http_client import ProviderHttpClient, transport_retry_policy

__all__ = [
        "ProviderClient",
        "ProviderHttpClient",
        "transport_retry_policy",
]
