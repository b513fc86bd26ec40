"""Configuration models"""
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_PROVIDER_BASE_URL = "https://api.fireworks.ai/inference"


class ProviderConfig(BaseModel):
    """Provider configuration"""
    id: str = "default"
    base_url: str = DEFAULT_PROVIDER_BASE_URL
    token: str = ""
    weight: int = Field(default=1, ge=1)


class ServerConfig(BaseModel):
    """Server configuration"""
    host: str = "0.0.0.0"
    port: int = 18000
    api_key: Optional[str] = None

    @field_validator("api_key", mode="before")
    @classmethod
    def empty_key_disables_auth(cls, value):
        return value or None


class AdapterConfig(BaseModel):
    """Chat-completion adapter configuration"""
    prefix: str = "/adapter"
    upstream_path: str = "/v1/chat/completions"
    default_model: str = "qwen-3-32-b"
    override_api_key: Optional[str] = None

    @field_validator("override_api_key", mode="before")
    @classmethod
    def empty_key_is_unset(cls, value):
        return value or None


class AppConfig(BaseModel):
    """Application configuration"""
    default_provider: ProviderConfig = Field(default_factory=ProviderConfig)
    # JSON-encoded array of {id, base_url, token, weight}
    additional_providers: Optional[str] = None
    strategy: str = "round-robin"
    server: ServerConfig = Field(default_factory=ServerConfig)
    adapter: AdapterConfig = Field(default_factory=AdapterConfig)
    verify_ssl: bool = True
    request_timeout_secs: float = 300.0
