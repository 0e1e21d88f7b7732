"""Deployment configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from topology.errors import MissingConfigurationError
from topology.models import EnvironmentDescriptor


class Settings(BaseSettings):
    """Deployment settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Target account
    cdk_default_account: str
    cdk_default_region: str

    # Service
    service: str
    stage: str
    authorizer_function_arn: str
    iso_3166_code: str

    # Optional
    subscription_endpoint: str = "aws_alarm@classifind.app"
    base_domain: str = "classifind.app"
    lambda_asset_dir: str = "./dist"
    log_level: str = "INFO"

    def to_descriptor(self) -> EnvironmentDescriptor:
        """Build the synthesis input from these settings."""
        return EnvironmentDescriptor(
            service=self.service,
            stage=self.stage,
            account=self.cdk_default_account,
            region=self.cdk_default_region,
            authorizer_function_arn=self.authorizer_function_arn,
            notification_endpoint=self.subscription_endpoint,
            country_code=self.iso_3166_code,
            base_domain=self.base_domain,
            lambda_asset_dir=self.lambda_asset_dir,
        )


def load_settings(**overrides) -> Settings:
    """Load settings, turning absent required variables into one error."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        missing = [
            str(error["loc"][0]).upper()
            for error in exc.errors()
            if error["type"] == "missing"
        ]
        if not missing:
            raise
        raise MissingConfigurationError(missing) from exc


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
