"""Endpoint configuration and factory for signers, sessions and listings."""

from dataclasses import dataclass
from typing import Optional
import logging
import os

import requests

from s3_sigv4.errors import ConfigError
from s3_sigv4.listing import Bucket, ObjectSummary, list_buckets, list_objects
from s3_sigv4.paginator import Paginator
from s3_sigv4.signing import Signer, get_credentials

logger = logging.getLogger(__name__)


@dataclass
class EndpointConfig:
    """Configuration for an S3 endpoint."""
    name: str
    url: Optional[str]
    region: str
    profile: Optional[str] = None
    verify_ssl: bool = True
    virtual_host: bool = False
    access_key: Optional[str] = None
    secret_key: Optional[str] = None


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class S3ClientFactory:
    """Factory for signers and listing paginators with multiple endpoint support."""

    def __init__(self):
        self.endpoints: dict[str, EndpointConfig] = {
            "aws": EndpointConfig(
                name="aws",
                url=None,
                region=os.getenv("AWS_REGION", "us-east-1"),
                profile=os.getenv("AWS_PROFILE", "aws"),
                verify_ssl=True,
                virtual_host=True,
            ),
            "custom": EndpointConfig(
                name="custom",
                url=self._normalize_endpoint(os.getenv("S3_ENDPOINT")),
                region=os.getenv("CUSTOM_S3_REGION", os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1"))),
                profile=os.getenv("CUSTOM_S3_PROFILE", os.getenv("S3_PROFILE", os.getenv("AWS_PROFILE", "aws"))),
                # SSL verification enabled by default for security
                # Set S3_VERIFY_SSL=false to disable (use with caution)
                verify_ssl=_env_flag("S3_VERIFY_SSL", "true"),
                virtual_host=_env_flag("S3_VIRTUAL_HOST", "false"),
                access_key=os.getenv("S3_ACCESS_KEY_ID"),
                secret_key=os.getenv("S3_SECRET_ACCESS_KEY"),
            ),
        }

    def _normalize_endpoint(self, url: Optional[str]) -> Optional[str]:
        """Ensure endpoint URL has proper scheme."""
        if not url:
            return None
        if not url.startswith(("http://", "https://")):
            return f"https://{url}"
        return url

    def get_config(self, endpoint: str = "aws") -> EndpointConfig:
        config = self.endpoints.get(endpoint)
        if not config:
            raise ConfigError(f"Unknown endpoint: {endpoint}")
        return config

    def get_endpoint_url(self, endpoint: str = "aws") -> str:
        """Get the URL for an endpoint."""
        config = self.get_config(endpoint)
        if config.url:
            return config.url

        # AWS default endpoint
        if config.region == "us-east-1":
            return "https://s3.amazonaws.com"
        return f"https://s3.{config.region}.amazonaws.com"

    def get_region(self, endpoint: str = "aws") -> str:
        """Get region for an endpoint."""
        return self.get_config(endpoint).region

    def get_verify_ssl(self, endpoint: str = "aws") -> bool:
        """Get SSL verification setting for an endpoint.

        Returns:
            True if SSL verification is enabled, False otherwise.
            SSL verification is enabled by default for security.
        """
        return self.get_config(endpoint).verify_ssl

    def create_signer(self, endpoint: str = "aws") -> Signer:
        """Create a signer from explicit keys or the endpoint's profile.

        Raises:
            ConfigError: no credentials could be found
        """
        config = self.get_config(endpoint)
        if config.access_key and config.secret_key:
            return Signer(config.access_key, config.secret_key, config.region)

        credentials = get_credentials(config.profile)
        if credentials is None:
            raise ConfigError(f"No credentials found for endpoint {endpoint!r}")
        logger.debug("Using credentials of profile %r for %s", config.profile, endpoint)
        return Signer.from_credentials(credentials, config.region)

    def create_session(self, endpoint: str = "aws") -> requests.Session:
        """Create a requests session honouring the endpoint's TLS setting."""
        session = requests.Session()
        session.verify = self.get_verify_ssl(endpoint)
        return session

    def list_buckets(self, endpoint: str = "aws", **kwargs) -> Paginator[Bucket]:
        """Lazily list every bucket of an endpoint."""
        return list_buckets(
            self.create_signer(endpoint),
            self.create_session(endpoint),
            self.get_endpoint_url(endpoint),
            **kwargs,
        )

    def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        endpoint: str = "aws",
        **kwargs,
    ) -> Paginator[ObjectSummary]:
        """Lazily list the objects of a bucket, optionally under a prefix."""
        config = self.get_config(endpoint)
        return list_objects(
            self.create_signer(endpoint),
            self.create_session(endpoint),
            self.get_endpoint_url(endpoint),
            bucket,
            prefix=prefix,
            virtual_host=config.virtual_host,
            **kwargs,
        )
