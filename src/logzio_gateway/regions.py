# Region code -> API base URL. "us" (US East) is the default.
LOGZIO_REGIONS: dict[str, str] = {
    "us": "https://api.logz.io",
    "us-west": "https://api-wa.logz.io",
    "eu": "https://api-eu.logz.io",
    "ca": "https://api-ca.logz.io",
    "au": "https://api-au.logz.io",
    "uk": "https://api-uk.logz.io",
}

DEFAULT_REGION = "us"


def region_help() -> str:
    """Bullet list of region codes and the API host each one points at."""
    return "\n".join(f"  - {code}: {url}" for code, url in LOGZIO_REGIONS.items())
