"""
Endpoint presets for well-known OAuth2 providers.
"""

from dataclasses import dataclass
from typing import Dict

from .errors import ConfigError


@dataclass(frozen=True)
class ProviderPreset:
    name: str
    authorization_endpoint: str
    token_endpoint: str


GITHUB = ProviderPreset(
    name="github",
    authorization_endpoint="https://github.com/login/oauth/authorize",
    token_endpoint="https://github.com/login/oauth/access_token",
)

GOOGLE = ProviderPreset(
    name="google",
    authorization_endpoint="https://accounts.google.com/o/oauth2/v2/auth",
    token_endpoint="https://oauth2.googleapis.com/token",
)

PROVIDERS: Dict[str, ProviderPreset] = {p.name: p for p in (GITHUB, GOOGLE)}


def get_provider(name: str) -> ProviderPreset:
    try:
        return PROVIDERS[name.lower()]
    except KeyError:
        raise ConfigError(f"unknown provider preset: {name}") from None
