from typing import Annotated

from pydantic import AnyUrl, BaseModel, TypeAdapter, UrlConstraints, ValidationError, field_validator

# Absolute http(s) URL of any length (HttpUrl stops at 2083 characters).
_http_url = TypeAdapter(Annotated[AnyUrl, UrlConstraints(allowed_schemes=["http", "https"], host_required=True)])


class RenderRequest(BaseModel):
    """
    A request to render one page.

    `url` must be an absolute http(s) URL. It is kept exactly as received,
    since the cache is keyed by the raw string.
    """
    url: str

    @field_validator("url")
    @classmethod
    def url_must_be_absolute_http(cls, value: str) -> str:
        try:
            _http_url.validate_python(value)
        except ValidationError:
            raise ValueError("url must be an absolute http or https URL")
        return value


class CacheStats(BaseModel):
    entries: int
    max_entries: int
    ttl: float
    hits: int
    misses: int


class ServiceInfo(BaseModel):
    """Response model for the root endpoint."""
    message: str
    version: str
    browser_running: bool
    cache: CacheStats
