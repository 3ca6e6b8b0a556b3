"""Update request model and the secure transport check."""

from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from fwupdater.errors import InvalidPackageUriError

SECURE_SCHEMES = frozenset({"https"})


def is_secure_uri(uri: str) -> bool:
    """Return True if uri uses an encrypted transport and names a host."""
    if not isinstance(uri, str) or not uri:
        return False
    parsed = urlparse(uri)
    return parsed.scheme.lower() in SECURE_SCHEMES and bool(parsed.netloc)


def validate_package_uri(uri: str) -> str:
    """Return uri unchanged or raise InvalidPackageUriError."""
    if not is_secure_uri(uri):
        raise InvalidPackageUriError(uri)
    return uri


class UpdateRequest(BaseModel):
    """Accepted firmware update request (immutable, consumed once)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    package_uri: str = Field(..., alias="packageUri", description="HTTPS package URI")

    @classmethod
    def from_uri(cls, uri: str) -> "UpdateRequest":
        """Build a request, rejecting non-secure URIs before any work starts.

        Raises:
            InvalidPackageUriError: If uri does not use the secure transport
        """
        return cls(package_uri=validate_package_uri(uri))
