"""
Centralized API endpoint definitions for the IntelliFlash collector.

All operations live under the same REST prefix on every array:
    https://<server>/zebi/api/v2/<operation>
"""

API_PREFIX = '/zebi/api/v2'

# Main API operation mappings
API_ENDPOINTS = {
    # Performance history, one sample per minute
    'system_analytics': 'getOneMinuteSystemAnalyticsHistory',
    'data_analytics': 'getOneMinuteDataAnalyticsHistory',

    # Identity (self-reported host and domain names)
    'system_properties': 'listSystemProperties',

    # Capacity snapshots
    'pools': 'listPools',
}

# Connect and header-wait timeout in seconds; also the longest stall allowed between body reads
HEADER_TIMEOUT = 3

# Deadline in seconds for the whole exchange, request sent to last body byte
DEFAULT_RESPONSE_TIMEOUT = 5

BODY_CHUNK_SIZE = 64 * 1024

REQUEST_HEADERS = {
    'Content-Type': 'application/json',
    'Cache-Control': 'no-cache',
}


def build_url(host: str, endpoint_key: str) -> str:
    """Build the full URL of an operation on one array."""
    return f"https://{host}{API_PREFIX}/{API_ENDPOINTS[endpoint_key]}"
