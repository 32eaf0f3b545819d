# fleetdeploy/models/status.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict


class DeploySubject(str, Enum):
    ORCHESTRATOR = "orchestrator"  # the control plane itself, never deployed
    RUNNER = "runner"


@dataclass
class SubjectStatus:
    deploy_archive_copied: bool = False
    deploy_archive_extracted: bool = False
    deploy_archive_tested: bool = False
    deployed: bool = False
    running: bool = False


@dataclass
class ConnStatus:
    connected: bool = False
    platform: str = ""
    subjects: Dict[DeploySubject, SubjectStatus] = field(default_factory=dict)

    def get_subject(self, subject: DeploySubject) -> SubjectStatus:
        """Copy of the subject's status, all-false if never touched."""
        current = self.subjects.get(subject)
        if current is None:
            return SubjectStatus()
        return replace(current)

    def set_subject(self, subject: DeploySubject, status: SubjectStatus) -> None:
        self.subjects[subject] = replace(status)

    def copy(self) -> "ConnStatus":
        return ConnStatus(
            connected=self.connected,
            platform=self.platform,
            subjects={k: replace(v) for k, v in self.subjects.items()},
        )


@dataclass
class SubjectAliveStatus:
    alive: bool = False
    bind_addr: str = ""
    bind_port: int = 0
