# fleetdeploy/routers/nodes.py
from dataclasses import asdict
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query

from fleetdeploy.dependencies import get_pool
from fleetdeploy.models.node import Node
from fleetdeploy.models.results import (
    AddResult,
    ConnectResult,
    DeployResult,
    DisconnectResult,
    RemoveResult,
    RunResult,
)
from fleetdeploy.models.status import DeploySubject
from fleetdeploy.schemas.node import (
    ActionOut,
    AliveOut,
    ConnStatusOut,
    DefaultsUpdate,
    NodeCreate,
    NodeOut,
    SubjectStatusOut,
)
from fleetdeploy.services.node_pool import NodePool

router = APIRouter(prefix="/nodes", tags=["nodes"])

NODE_NOT_FOUND = "Node not found"

_CONNECT_ERRORS = {
    ConnectResult.NODE_NOT_FOUND: (404, NODE_NOT_FOUND),
    ConnectResult.NOT_AUTHENTICATED: (401, "Authentication failed"),
    ConnectResult.CONNECTION_FAILED: (502, "Connection failed"),
}

_DEPLOY_ERRORS = {
    DeployResult.INVALID_ARGUMENT: (400, "Subject cannot be deployed"),
    DeployResult.NODE_NOT_FOUND: (404, NODE_NOT_FOUND),
    DeployResult.NODE_NOT_CONNECTED: (409, "Node not connected"),
    DeployResult.DEPLOY_COPY_FAILED: (502, "Archive copy failed"),
    DeployResult.DEPLOY_EXTRACTION_FAILED: (502, "Archive extraction failed"),
    DeployResult.DEPLOY_TEST_FAILED: (502, "Deployed binary test failed"),
}

_RUN_ERRORS = {
    RunResult.NODE_NOT_FOUND: (404, NODE_NOT_FOUND),
    RunResult.NODE_NOT_CONNECTED: (409, "Node not connected"),
    RunResult.RUN_FAILED: (502, "Process did not start"),
}


def _node_out(pool: NodePool, node: Node) -> NodeOut:
    return NodeOut(
        name=node.name,
        address=node.address,
        params=node.params,
        connected=pool.is_connected(node.name).connected,
    )


def _subject_out(pool: NodePool, name: str, subject: DeploySubject) -> SubjectStatusOut:
    status = pool.is_connected(name).get_subject(subject)
    return SubjectStatusOut(**asdict(status))


@router.get("/", response_model=List[NodeOut])
def list_nodes(pool: NodePool = Depends(get_pool)):
    return [_node_out(pool, node) for node in pool.list_nodes()]


@router.get("/defaults/params", response_model=Dict[str, str])
def get_defaults(pool: NodePool = Depends(get_pool)):
    return pool.defaults()


@router.put("/defaults/params", response_model=Dict[str, str])
def update_defaults(payload: DefaultsUpdate, pool: NodePool = Depends(get_pool)):
    for key, value in payload.params.items():
        pool.set_default(key, value)
    return pool.defaults()


@router.get("/{name}", response_model=NodeOut)
def get_node(name: str, pool: NodePool = Depends(get_pool)):
    node = pool.get_node(name)
    if not node:
        raise HTTPException(status_code=404, detail=NODE_NOT_FOUND)
    return _node_out(pool, node)


@router.post("/", response_model=NodeOut)
def add_node(payload: NodeCreate, pool: NodePool = Depends(get_pool)):
    result = pool.add(payload.name, payload.address, payload.params)
    if result is AddResult.NODE_ALREADY_EXISTS:
        raise HTTPException(status_code=400, detail="Node with this name already exists")
    return _node_out(pool, pool.get_node(payload.name))


@router.delete("/{name}")
def remove_node(name: str, pool: NodePool = Depends(get_pool)):
    if pool.remove(name) is RemoveResult.NODE_NOT_FOUND:
        raise HTTPException(status_code=404, detail=NODE_NOT_FOUND)
    return {"deleted": True, "name": name}


# ---------- Sessions ----------
@router.post("/{name}/connect", response_model=ConnStatusOut)
def connect_node(name: str, pool: NodePool = Depends(get_pool)):
    result = pool.connect(name)
    if result in _CONNECT_ERRORS:
        code, message = _CONNECT_ERRORS[result]
        raise HTTPException(
            status_code=code,
            detail={"error_type": result.value, "message": message},
        )
    return ConnStatusOut(**asdict(pool.is_connected(name)))


@router.post("/{name}/disconnect")
def disconnect_node(name: str, pool: NodePool = Depends(get_pool)):
    if pool.disconnect(name) is DisconnectResult.NODE_NOT_FOUND:
        raise HTTPException(status_code=404, detail=NODE_NOT_FOUND)
    return {"status": "ok", "action": "disconnect", "node": name}


@router.get("/{name}/status", response_model=ConnStatusOut)
def node_status(name: str, pool: NodePool = Depends(get_pool)):
    if not pool.get_node(name):
        raise HTTPException(status_code=404, detail=NODE_NOT_FOUND)
    return ConnStatusOut(**asdict(pool.is_connected(name)))


# ---------- Deploy / run / alive ----------
@router.post("/{name}/deploy", response_model=ActionOut)
def deploy_node(
    name: str,
    subject: DeploySubject = Query(DeploySubject.RUNNER),
    pool: NodePool = Depends(get_pool),
):
    """
    Copy the configured archive, extract it and smoke-test the binary.
    On a stage failure the detail carries the flags reached so far.
    """
    result = pool.deploy(name, subject)
    if result in _DEPLOY_ERRORS:
        code, message = _DEPLOY_ERRORS[result]
        raise HTTPException(
            status_code=code,
            detail={
                "error_type": result.value,
                "message": message,
                "subject_status": _subject_out(pool, name, subject).model_dump(),
            },
        )
    return ActionOut(
        action="deploy",
        node=name,
        subject=subject,
        subject_status=_subject_out(pool, name, subject),
    )


@router.post("/{name}/run", response_model=ActionOut)
def run_node(
    name: str,
    subject: DeploySubject = Query(DeploySubject.RUNNER),
    pool: NodePool = Depends(get_pool),
):
    """
    Stop the previous instance (if any) and start the deployed binary.
    """
    result = pool.run(name, subject)
    if result in _RUN_ERRORS:
        code, message = _RUN_ERRORS[result]
        raise HTTPException(
            status_code=code,
            detail={
                "error_type": result.value,
                "message": message,
                "subject_status": _subject_out(pool, name, subject).model_dump(),
            },
        )
    return ActionOut(
        action="run",
        node=name,
        subject=subject,
        subject_status=_subject_out(pool, name, subject),
    )


@router.get("/{name}/alive", response_model=AliveOut)
def node_alive(name: str, pool: NodePool = Depends(get_pool)):
    if not pool.get_node(name):
        raise HTTPException(status_code=404, detail=NODE_NOT_FOUND)
    return AliveOut(**asdict(pool.is_alive(name)))
