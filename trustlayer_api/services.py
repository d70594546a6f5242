"""
Per-application service container.

Clients are built once from the immutable Settings and stored on
``app.state``; route handlers receive them through FastAPI dependencies.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from .aleo import AleoClient
from .config import Settings
from .errors import ServiceUnavailableError
from .evm import HookClient
from .prover import ExternalProver, SnarkosProver
from .registration import RegistrationService


@dataclass
class Services:
    settings: Settings
    aleo: AleoClient
    hook: Optional[HookClient]
    prover: ExternalProver
    registration: RegistrationService

    @classmethod
    def build(
        cls,
        settings: Settings,
        aleo: Optional[AleoClient] = None,
        hook: Optional[HookClient] = None,
        prover: Optional[ExternalProver] = None,
    ) -> "Services":
        aleo = aleo or AleoClient(settings)
        if hook is None and settings.eth_enabled:
            hook = HookClient(settings)
        prover = prover or SnarkosProver(settings)
        return cls(
            settings=settings,
            aleo=aleo,
            hook=hook,
            prover=prover,
            registration=RegistrationService(settings, aleo, hook),
        )

    def require_hook(self) -> HookClient:
        if self.hook is None:
            raise ServiceUnavailableError("Ethereum not configured")
        return self.hook

    def require_private_key(self) -> None:
        if not self.settings.aleo_private_key:
            raise ServiceUnavailableError(
                "Aleo private key not configured. Set ALEO_PRIVATE_KEY in .env"
            )

    def resolve_view_key(self, view_key: Optional[str]) -> str:
        key = view_key or self.settings.aleo_view_key
        if not key:
            raise ServiceUnavailableError(
                "No view key available. Set ALEO_VIEW_KEY in .env or provide viewKey in request."
            )
        return key


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_app_settings(request: Request) -> Settings:
    return request.app.state.services.settings
