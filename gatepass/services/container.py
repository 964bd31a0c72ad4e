"""
Collaborators built once at startup and injected into the routers.
"""
from dataclasses import dataclass

from fastapi import Request

from gatepass.core.config import Settings
from gatepass.services.email_service import EmailService
from gatepass.services.pass_generator import PassGenerator
from gatepass.services.s3_service import S3Service


@dataclass
class Services:
    settings: Settings
    storage: S3Service
    mailer: EmailService
    pass_generator: PassGenerator

    @classmethod
    def from_settings(cls, settings: Settings) -> "Services":
        return cls(
            settings=settings,
            storage=S3Service(settings),
            mailer=EmailService(settings),
            pass_generator=PassGenerator.from_settings(settings),
        )


def get_services(request: Request) -> Services:
    """Dependency returning the container created in the application lifespan."""
    return request.app.state.services
