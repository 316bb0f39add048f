"""Temporal client connection factory.

Two modes, picked from the environment:

1. **Local dev**: TEMPORAL_ADDRESS (default `localhost:7233`), no auth.
2. **Temporal Cloud**: TEMPORAL_API_KEY plus TEMPORAL_REGIONAL_ENDPOINT, TLS on.

Workers and scripts call `connect()` and never branch on the mode themselves.
"""

import os

from temporalio.client import Client


def _cloud_address() -> str:
    address = os.environ.get("TEMPORAL_REGIONAL_ENDPOINT", "")
    if not address:
        raise ValueError(
            "TEMPORAL_API_KEY is set but TEMPORAL_REGIONAL_ENDPOINT is missing. "
            "Use the regional endpoint from the Temporal Cloud 'Connect' dialog."
        )
    return address


async def connect() -> Client:
    """Create a connected Temporal client for the current environment."""
    namespace = os.environ.get("TEMPORAL_NAMESPACE", "default")
    api_key = os.environ.get("TEMPORAL_API_KEY")

    if api_key:
        return await Client.connect(
            _cloud_address(),
            namespace=namespace,
            api_key=api_key,
            tls=True,
        )

    return await Client.connect(
        os.environ.get("TEMPORAL_ADDRESS", "localhost:7233"),
        namespace=namespace,
    )
