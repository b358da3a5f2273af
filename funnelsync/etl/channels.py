"""FunnelSync - Channel inference for CRM records.

The CRM feed has no channel column, so the channel is inferred from the
opportunity's UTM source/medium to match the labels the ads feed uses.
"""

from typing import Dict

KNOWN_SOURCES: Dict[str, str] = {
    "google": "google_ads",
    "facebook": "facebook_ads",
    "tiktok": "tiktok_ads",
    "linkedin": "linkedin_ads",
}


def infer_channel(utm_source: str, utm_medium: str) -> str:
    """Map UTM source/medium to a canonical channel label."""
    channel = KNOWN_SOURCES.get(utm_source)
    if channel is not None:
        return channel
    return f"{utm_source}_{utm_medium}"
