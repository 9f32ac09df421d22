"""Distro model - configuration template for a class of hosts."""

from pydantic import BaseModel


class Distro(BaseModel):
    """Describes a class of hosts and its capacity."""

    id: str
    provider: str = ""
    # Maximum number of running hosts; 0 means no limit
    pool_size: int = 0
    ssh_port: int = 22

    def has_pool_limit(self) -> bool:
        return self.pool_size > 0
