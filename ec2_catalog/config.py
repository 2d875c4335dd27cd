"""
Application configuration using Pydantic Settings.
All configuration is loaded from environment variables (or a .env file)
and handed explicitly to the collaborators that need it.
"""
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Attributes read from every EC2 "Compute Instance" product
DEFAULT_PRODUCT_ATTRIBUTES = [
    "clockSpeed",
    "currentGeneration",
    "dedicatedEbsThroughput",
    "ebsOptimized",
    "enhancedNetworkingSupported",
    "instanceFamily",
    "instanceType",
    "intelAvx2Available",
    "intelAvxAvailable",
    "intelTurboAvailable",
    "memory",
    "networkPerformance",
    "physicalProcessor",
    "processorArchitecture",
    "processorFeatures",
    "storage",
    "vcpu",
]


class Settings(BaseSettings):
    """Catalog builder settings loaded from environment variables."""

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # AWS bulk pricing
    pricing_base_url: str = Field(
        default="https://pricing.us-east-1.amazonaws.com",
        alias="PRICING_BASE_URL"
    )
    pricing_service_code: str = Field(default="AmazonEC2", alias="PRICING_SERVICE_CODE")
    cache_dir: str = Field(default="./tmp/aws_cache", alias="CACHE_DIR")
    request_timeout: int = Field(default=30, alias="REQUEST_TIMEOUT")

    # Folding
    product_families: List[str] = Field(
        default=["Compute Instance"],
        alias="PRODUCT_FAMILIES"
    )
    fold_attributes: List[str] = Field(default=["instanceType"], alias="FOLD_ATTRIBUTES")
    product_attributes: List[str] = Field(
        default=DEFAULT_PRODUCT_ATTRIBUTES,
        alias="PRODUCT_ATTRIBUTES"
    )
    # Generation status legitimately changes between price-list versions
    mutable_attributes: List[str] = Field(
        default=["currentGeneration"],
        alias="MUTABLE_ATTRIBUTES"
    )

    # Canonical instance type order: "botocore" or "github"
    order_source: str = Field(default="botocore", alias="ORDER_SOURCE")
    github_api_token: Optional[str] = Field(default=None, alias="GITHUB_API_TOKEN")
    aws_sdk_repo: str = Field(default="aws/aws-sdk-ruby", alias="AWS_SDK_REPO")
    aws_sdk_services_path: str = Field(default="services.json", alias="AWS_SDK_SERVICES_PATH")

    # Diagnostics
    fail_on_unknown_values: bool = Field(default=False, alias="FAIL_ON_UNKNOWN_VALUES")

    # CloudWatch
    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        enable_decoding=False,
        extra="ignore"
    )

    @field_validator(
        "product_families",
        "fold_attributes",
        "product_attributes",
        "mutable_attributes",
        mode="before"
    )
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse lists from comma-separated strings or lists."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("order_source")
    @classmethod
    def check_order_source(cls, v: str) -> str:
        v = v.lower()
        if v not in ("botocore", "github"):
            raise ValueError(f"Unsupported order source: {v}")
        return v

    @property
    def offers_index_url(self) -> str:
        """Offer index listing every published version of the service."""
        return f"{self.pricing_base_url}/offers/v1.0/aws/{self.pricing_service_code}/index.json"
