"""Runtime configuration for the expense tracker services."""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Deployment settings, built once at startup and passed to services."""

    expenses_table: str = Field(..., description="DynamoDB table holding expense rows")
    photos_bucket: str = Field(..., description="S3 bucket holding receipt photos")
    photos_public_url: Optional[str] = Field(
        None, description="Public base URL of the photos bucket"
    )
    region: str = Field(default="us-east-1", description="AWS region")
    log_level: str = Field(default="INFO", description="Root logging level")
    localstack_endpoint: Optional[str] = Field(
        None, description="LocalStack endpoint, used only when enabled"
    )
    use_localstack: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Optional mapping to read instead of os.environ

        Returns:
            Settings instance
        """
        env = os.environ if environ is None else environ

        return cls(
            expenses_table=env.get('EXPENSES_TABLE', 'expense-tracker-expenses'),
            photos_bucket=env.get('PHOTOS_BUCKET', 'expense-photos'),
            photos_public_url=env.get('PHOTOS_PUBLIC_URL') or None,
            region=env.get('AWS_REGION', env.get('AWS_DEFAULT_REGION', 'us-east-1')),
            log_level=env.get('LOG_LEVEL', 'INFO'),
            localstack_endpoint=env.get('LOCALSTACK_ENDPOINT') or None,
            use_localstack=env.get('USE_LOCALSTACK', 'false').lower() == 'true'
        )

    @property
    def endpoint_url(self) -> Optional[str]:
        """Endpoint override for boto3 clients, if LocalStack is enabled."""
        if self.use_localstack and self.localstack_endpoint:
            return self.localstack_endpoint
        return None

    def photo_base_url(self) -> str:
        """Base URL under which uploaded photos are publicly reachable."""
        if self.photos_public_url:
            return self.photos_public_url.rstrip('/')
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.photos_bucket}"
        return f"https://{self.photos_bucket}.s3.{self.region}.amazonaws.com"
