import uuid
from dataclasses import dataclass

from ..models.enums import Role


@dataclass(frozen=True)
class Principal:
    """The authenticated actor of one request. Never cached across requests."""
    id: uuid.UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin

    @property
    def is_supervisor(self) -> bool:
        return self.role == Role.supervisor
