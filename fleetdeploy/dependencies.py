# fleetdeploy/dependencies.py
from functools import lru_cache

from fleetdeploy.services.node_pool import NodePool


@lru_cache(maxsize=1)
def get_pool() -> NodePool:
    """
    Dependency that provides the process-wide node pool.
    """
    return NodePool.from_env()
