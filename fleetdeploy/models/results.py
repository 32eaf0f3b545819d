# fleetdeploy/models/results.py
from enum import Enum


class AddResult(str, Enum):
    OK = "ok"
    NODE_ALREADY_EXISTS = "node_already_exists"


class RemoveResult(str, Enum):
    OK = "ok"
    NODE_NOT_FOUND = "node_not_found"


class ConnectResult(str, Enum):
    OK = "ok"
    NODE_NOT_FOUND = "node_not_found"
    NOT_AUTHENTICATED = "not_authenticated"
    CONNECTION_FAILED = "connection_failed"


class DisconnectResult(str, Enum):
    OK = "ok"
    NODE_NOT_FOUND = "node_not_found"


class DeployResult(str, Enum):
    OK = "ok"
    INVALID_ARGUMENT = "invalid_argument"
    NODE_NOT_FOUND = "node_not_found"
    NODE_NOT_CONNECTED = "node_not_connected"
    DEPLOY_COPY_FAILED = "deploy_copy_failed"
    DEPLOY_EXTRACTION_FAILED = "deploy_extraction_failed"
    DEPLOY_TEST_FAILED = "deploy_test_failed"


class RunResult(str, Enum):
    OK = "ok"
    NODE_NOT_FOUND = "node_not_found"
    NODE_NOT_CONNECTED = "node_not_connected"
    RUN_FAILED = "run_failed"
