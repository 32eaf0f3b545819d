# fleetdeploy/schemas/node.py
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from fleetdeploy.models.status import DeploySubject


class NodeCreate(BaseModel):
    name: str = Field(min_length=1)
    address: str = Field(min_length=1, description="host or host:port")
    params: Dict[str, str] = Field(
        default_factory=dict,
        description="username, password, distr, bind_addr, bind_port, ...",
    )


class NodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    address: str
    # secret parameters (password) are never returned
    params: Dict[str, str] = Field(default_factory=dict)
    connected: bool = False


class DefaultsUpdate(BaseModel):
    params: Dict[str, str]


class SubjectStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    deploy_archive_copied: bool = False
    deploy_archive_extracted: bool = False
    deploy_archive_tested: bool = False
    deployed: bool = False
    running: bool = False


class ConnStatusOut(BaseModel):
    connected: bool
    platform: str = ""
    subjects: Dict[DeploySubject, SubjectStatusOut] = Field(default_factory=dict)


class AliveOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    alive: bool
    bind_addr: str = ""
    bind_port: int = 0


class ActionOut(BaseModel):
    status: str = "ok"
    action: str
    node: str
    subject: Optional[DeploySubject] = None
    subject_status: Optional[SubjectStatusOut] = None
