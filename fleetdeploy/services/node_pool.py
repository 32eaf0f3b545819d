# fleetdeploy/services/node_pool.py
"""
In-memory pool of remote nodes and their live sessions.

- Registry: node name -> address + string parameters
- Parameters: node override, then pool default, then ""
- Sessions: at most one Instance per node name
- Deploy / run / alive protocols on top of a live session

Every outcome is returned as a result enum; transport faults are mapped
to those results and never escape the pool. Structural changes are
serialised by one pool-wide lock, remote calls run outside it.
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple, Union

import paramiko

from fleetdeploy.models.node import SECRET_PARAMETERS, Node, NodeParameter
from fleetdeploy.models.results import (
    AddResult,
    ConnectResult,
    DeployResult,
    DisconnectResult,
    RemoveResult,
    RunResult,
)
from fleetdeploy.models.status import ConnStatus, DeploySubject, SubjectAliveStatus, SubjectStatus
from fleetdeploy.services.deploy_pipeline import deploy_subject
from fleetdeploy.services.lifecycle import probe_alive, run_subject
from fleetdeploy.services.remote_commands import PLATFORM_COMMAND, STARTUP_WAIT_SECONDS
from fleetdeploy.utils.crypto import decrypt_text, encrypt_text
from fleetdeploy.vps.connection import (
    TRANSPORT_ERRORS,
    RemoteSession,
    SessionFactory,
    VPSConnection,
    split_address,
)

logger = logging.getLogger(__name__)

DEFAULTS_ENV_PREFIX = "FLEETDEPLOY_DEFAULT_"

ParamKey = Union[NodeParameter, str]


def _key(key: ParamKey) -> str:
    return key.value if isinstance(key, NodeParameter) else str(key)


def _seal(key: str, value: str) -> str:
    if key in SECRET_PARAMETERS and value:
        return encrypt_text(value)
    return value


def _unseal(key: str, value: str) -> str:
    if key in SECRET_PARAMETERS and value:
        plain = decrypt_text(value)
        if plain is None:
            logger.error("Stored %s could not be decrypted, treating it as unset", key)
            return ""
        return plain
    return value


@dataclass
class Instance:
    """Sole owner of a node's live session."""

    session: RemoteSession
    conn_status: ConnStatus

    def close(self) -> None:
        self.conn_status.connected = False
        self.session.close()


class NodePool:
    def __init__(
        self,
        session_factory: SessionFactory = VPSConnection,
        defaults: Optional[Mapping[str, str]] = None,
        startup_wait: int = STARTUP_WAIT_SECONDS,
    ):
        self._session_factory = session_factory
        self._startup_wait = startup_wait
        self._nodes: Dict[str, Node] = {}
        self._instances: Dict[str, Instance] = {}
        self._defaults: Dict[str, str] = {}
        self._lock = threading.RLock()

        for key, value in (defaults or {}).items():
            self.set_default(key, value)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **kwargs) -> "NodePool":
        """Pool with defaults seeded from FLEETDEPLOY_DEFAULT_<PARAM> variables."""
        environ = os.environ if environ is None else environ
        defaults = {
            name[len(DEFAULTS_ENV_PREFIX):].lower(): value
            for name, value in environ.items()
            if name.startswith(DEFAULTS_ENV_PREFIX)
        }
        return cls(defaults=defaults, **kwargs)

    # ---------- Parameters ----------
    def set_default(self, key: ParamKey, value: str) -> None:
        key = _key(key)
        with self._lock:
            self._defaults[key] = _seal(key, value or "")

    def defaults(self) -> Dict[str, str]:
        """Pool-wide defaults, secrets left out."""
        with self._lock:
            return {k: v for k, v in self._defaults.items() if k not in SECRET_PARAMETERS}

    def get_param(self, node: Union[Node, str], key: ParamKey) -> str:
        """
        Node override, then pool default, then "". A Node is resolved by
        name against the registry; unregistered names get defaults only.
        """
        key = _key(key)
        name = node.name if isinstance(node, Node) else node
        with self._lock:
            node = self._nodes.get(name)
            value = node.params.get(key, "") if node is not None else ""
            if not value:
                value = self._defaults.get(key, "")
        return _unseal(key, value)

    # ---------- Registry ----------
    def add(self, name: str, address: str, params: Optional[Mapping[str, str]] = None) -> AddResult:
        with self._lock:
            if name in self._nodes:
                logger.error("Node already exists: %s", name)
                return AddResult.NODE_ALREADY_EXISTS

            sealed = {_key(k): _seal(_key(k), v or "") for k, v in (params or {}).items()}
            self._nodes[name] = Node(name=name, address=address, params=sealed)

        logger.info("Added node %s (%s)", name, address)
        return AddResult.OK

    def remove(self, name: str) -> RemoveResult:
        with self._lock:
            if name not in self._nodes:
                logger.error("Node doesn't exist: %s", name)
                return RemoveResult.NODE_NOT_FOUND
            del self._nodes[name]
            instance = self._instances.pop(name, None)

        if instance:
            instance.close()
        logger.info("Removed node: %s", name)
        return RemoveResult.OK

    def get_node(self, name: str) -> Optional[Node]:
        """Copy of a registered node, secrets left out."""
        with self._lock:
            node = self._nodes.get(name)
            if node is None:
                return None
            params = {k: v for k, v in node.params.items() if k not in SECRET_PARAMETERS}
            return Node(name=node.name, address=node.address, params=params)

    def list_nodes(self) -> List[Node]:
        with self._lock:
            names = list(self._nodes)
        return [n for n in (self.get_node(name) for name in names) if n is not None]

    # ---------- Sessions ----------
    def connect(self, name: str) -> ConnectResult:
        with self._lock:
            node = self._nodes.get(name)
            if node is None:
                logger.error("Node doesn't exist: %s", name)
                return ConnectResult.NODE_NOT_FOUND
            previous = self._instances.pop(name, None)

        if previous:
            previous.close()
            logger.info("Dropped previous session of %s", name)

        try:
            host, port = split_address(node.address)
        except ValueError:
            logger.error("Bad address for %s: %r", name, node.address)
            return ConnectResult.CONNECTION_FAILED

        session = self._session_factory(
            host,
            port,
            self.get_param(node, NodeParameter.USERNAME),
            self.get_param(node, NodeParameter.PASSWORD) or None,
        )
        try:
            session.connect()
        except paramiko.AuthenticationException as e:
            logger.error("Credentials not accepted: %s (error '%s')", name, e)
            return ConnectResult.NOT_AUTHENTICATED
        except TRANSPORT_ERRORS as e:
            logger.error("Connection to %s failed: %s", name, e)
            return ConnectResult.CONNECTION_FAILED

        try:
            platform, _ = session.run(PLATFORM_COMMAND)
        except TRANSPORT_ERRORS as e:
            logger.warning("Could not identify platform of %s: %s", name, e)
            platform = ""

        instance = Instance(session, ConnStatus(connected=True, platform=platform.strip()))
        with self._lock:
            if name not in self._nodes:
                removed = True
                replaced = None
            else:
                removed = False
                replaced = self._instances.pop(name, None)
                self._instances[name] = instance

        if removed:
            instance.close()
            logger.error("Node removed while connecting: %s", name)
            return ConnectResult.NODE_NOT_FOUND
        if replaced:
            replaced.close()

        logger.info("Connected node: %s", name)
        return ConnectResult.OK

    def disconnect(self, name: str) -> DisconnectResult:
        with self._lock:
            if name not in self._nodes:
                logger.error("Node doesn't exist: %s", name)
                return DisconnectResult.NODE_NOT_FOUND
            instance = self._instances.pop(name, None)

        if instance:
            instance.close()
        logger.info("Disconnected node: %s", name)
        return DisconnectResult.OK

    def is_connected(self, name: str) -> ConnStatus:
        with self._lock:
            instance = self._instances.get(name)
            if instance is None:
                return ConnStatus()
            return instance.conn_status.copy()

    def close_all(self) -> None:
        with self._lock:
            instances = list(self._instances.items())
            self._instances.clear()

        for name, instance in instances:
            instance.close()
            logger.info("Disconnected node: %s", name)

    # ---------- Deploy / run / alive ----------
    def _live(self, name: str) -> Tuple[Optional[Node], Optional[Instance]]:
        with self._lock:
            return self._nodes.get(name), self._instances.get(name)

    def _store_subject(self, instance: Instance, subject: DeploySubject, status: SubjectStatus) -> None:
        with self._lock:
            instance.conn_status.set_subject(subject, status)

    def deploy(self, name: str, subject: DeploySubject) -> DeployResult:
        if subject == DeploySubject.ORCHESTRATOR:
            logger.error("Refusing to deploy %s to %s", subject.value, name)
            return DeployResult.INVALID_ARGUMENT

        node, instance = self._live(name)
        if node is None:
            logger.error("Node doesn't exist: %s", name)
            return DeployResult.NODE_NOT_FOUND
        if instance is None:
            logger.error("Node not connected: %s", name)
            return DeployResult.NODE_NOT_CONNECTED

        status = instance.conn_status.get_subject(subject)
        result = deploy_subject(
            instance.session,
            subject,
            self.get_param(node, NodeParameter.DISTR),
            status,
        )
        self._store_subject(instance, subject, status)

        if result is DeployResult.OK:
            logger.info("Deployed %s on %s", subject.value, name)
        else:
            logger.error("Deploy of %s on %s stopped: %s", subject.value, name, result.value)
        return result

    def run(self, name: str, subject: DeploySubject) -> RunResult:
        node, instance = self._live(name)
        if node is None:
            logger.error("Node doesn't exist: %s", name)
            return RunResult.NODE_NOT_FOUND
        if instance is None:
            logger.error("Node not connected: %s", name)
            return RunResult.NODE_NOT_CONNECTED

        status = instance.conn_status.get_subject(subject)
        result = run_subject(
            instance.session,
            subject,
            self.get_param(node, NodeParameter.BIND_ADDR),
            self.get_param(node, NodeParameter.BIND_PORT),
            status,
            wait_seconds=self._startup_wait,
        )
        self._store_subject(instance, subject, status)
        return result

    def is_alive(self, name: str) -> SubjectAliveStatus:
        _, instance = self._live(name)
        if instance is None:
            return SubjectAliveStatus()
        return probe_alive(instance.session)
