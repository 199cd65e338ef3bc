from dataclasses import dataclass
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

from logzio_gateway.errors import ErrorKind, GatewayError
from logzio_gateway.regions import DEFAULT_REGION, LOGZIO_REGIONS


class Settings(BaseSettings):
    # Credentials / endpoint
    api_key: str = ""
    region: str = DEFAULT_REGION
    # Custom API URL. When set it overrides the region lookup.
    url: str = ""

    # HTTP behaviour (milliseconds)
    timeout: int = 30_000
    retry_attempts: int = 3
    retry_delay: int = 1_000

    # Upper bound applied by the front-ends to caller-supplied limits.
    max_results: int = 1_000

    log_level: str = "info"

    model_config = SettingsConfigDict(
        env_prefix="LOGZIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def to_gateway_config(self) -> "GatewayConfig":
        return GatewayConfig(
            api_key=self.api_key,
            base_url=resolve_base_url(self.region, self.url or None),
            timeout_ms=self.timeout,
            max_attempts=self.retry_attempts,
            base_delay_ms=self.retry_delay,
        )


def resolve_base_url(region: str | None, custom_url: str | None = None) -> str:
    """Return the API base URL for a region code, or the custom URL if given."""
    if custom_url:
        return custom_url.rstrip("/")
    code = (region or DEFAULT_REGION).strip().lower()
    try:
        return LOGZIO_REGIONS[code]
    except KeyError:
        raise GatewayError(
            ErrorKind.CONFIGURATION,
            f"Unknown region {region!r}. Supported regions: {', '.join(LOGZIO_REGIONS)}",
            context={"region": region},
        ) from None


@dataclass(frozen=True)
class GatewayConfig:
    """Finished, read-only configuration handed to the gateway."""

    api_key: str
    base_url: str = LOGZIO_REGIONS[DEFAULT_REGION]
    timeout_ms: int = 30_000
    max_attempts: int = 3
    base_delay_ms: int = 1_000

    def __post_init__(self) -> None:
        problems: list[str] = []
        if not self.api_key or not self.api_key.strip():
            problems.append("API key is required")
        parsed = urlparse(self.base_url or "")
        if parsed.scheme != "https" or not parsed.netloc:
            problems.append(f"base URL must be an https:// URL (got {self.base_url!r})")
        if not 1_000 <= self.timeout_ms <= 60_000:
            problems.append("timeout must be between 1000 and 60000 ms")
        if not 1 <= self.max_attempts <= 10:
            problems.append("max attempts must be between 1 and 10")
        if not 100 <= self.base_delay_ms <= 10_000:
            problems.append("base retry delay must be between 100 and 10000 ms")
        if problems:
            raise GatewayError(
                ErrorKind.CONFIGURATION,
                "Invalid gateway configuration: " + "; ".join(problems),
                context={"problems": problems},
            )
        # Normalise without breaking immutability for callers.
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))


settings = Settings()
