# fleetdeploy/models/node.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict


class NodeParameter(str, Enum):
    USERNAME = "username"
    PASSWORD = "password"
    DISTR = "distr"  # local path of the archive to deploy
    BIND_ADDR = "bind_addr"
    BIND_PORT = "bind_port"


# held encrypted in the registry, decrypted only on resolution
SECRET_PARAMETERS = frozenset({NodeParameter.PASSWORD.value})


@dataclass
class Node:
    """A registered node. Session state lives on the pool, not here."""

    name: str
    address: str
    params: Dict[str, str] = field(default_factory=dict)
