from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from membership import ClusterCoordinator, Settings
from membership.exceptions import ClusterConfigError

FINGERPRINT_PATTERN = r"^([A-Fa-f0-9]{2}:){31}[A-Fa-f0-9]{2}$"

app = FastAPI(title="cluster membership")


class CreateClusterRequest(BaseModel):
    clustername: str = Field(max_length=15)
    nodeid: int | None = Field(default=None, ge=1)
    votes: int | None = Field(default=None, ge=1)
    link0: str | None = None
    link1: str | None = None


class AddNodeRequest(BaseModel):
    nodeid: int | None = Field(default=None, ge=1)
    votes: int | None = Field(default=None, ge=0)
    force: bool = False
    link0: str | None = None
    link1: str | None = None


class JoinRequest(BaseModel):
    hostname: str
    password: str = Field(max_length=128)
    fingerprint: str = Field(pattern=FINGERPRINT_PATTERN)
    nodeid: int | None = Field(default=None, ge=1)
    votes: int | None = Field(default=None, ge=0)
    force: bool = False
    link0: str | None = None
    link1: str | None = None


@app.on_event("startup")
def startup_event() -> None:
    """Create the coordinator unless one was installed beforehand."""
    if getattr(app.state, "coordinator", None) is None:
        app.state.coordinator = ClusterCoordinator(Settings.from_env())


@app.on_event("shutdown")
def shutdown_event() -> None:
    coordinator = getattr(app.state, "coordinator", None)
    if coordinator is not None:
        coordinator.shutdown()
    app.state.coordinator = None


@app.exception_handler(ClusterConfigError)
def cluster_error_handler(request: Request, exc: ClusterConfigError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/cluster/config")
def index() -> list[dict]:
    """Directory index."""
    return [{"name": "nodes"}, {"name": "totem"}, {"name": "join"}, {"name": "qdevice"}]


@app.post("/cluster/config")
def create_cluster(payload: CreateClusterRequest) -> dict:
    """Generate a new cluster configuration; runs as a background task."""
    task_id = app.state.coordinator.create_cluster(
        payload.clustername,
        nodeid=payload.nodeid,
        votes=payload.votes,
        link0=payload.link0,
        link1=payload.link1,
    )
    return {"task": task_id}


@app.get("/cluster/config/nodes")
def list_nodes() -> dict:
    """Node list of the cluster configuration."""
    return {"nodes": app.state.coordinator.list_nodes()}


@app.post("/cluster/config/nodes/{node}")
def add_node(node: str, payload: AddNodeRequest | None = None) -> dict:
    """Add ``node`` to the cluster configuration (used by joining nodes)."""
    payload = payload or AddNodeRequest()
    return app.state.coordinator.add_node(
        node,
        nodeid=payload.nodeid,
        votes=payload.votes,
        link0=payload.link0,
        link1=payload.link1,
        force=payload.force,
    )


@app.delete("/cluster/config/nodes/{node}")
def remove_node(node: str) -> None:
    """Remove ``node`` (name or link address) from the cluster configuration."""
    app.state.coordinator.remove_node(node)
    return None


@app.get("/cluster/config/join")
def join_info(node: str | None = None) -> dict:
    """Information needed to join this cluster through ``node``."""
    return app.state.coordinator.join_info(node)


@app.post("/cluster/config/join")
def join_cluster(payload: JoinRequest) -> dict:
    """Join this node into an existing cluster; runs as a background task."""
    task_id = app.state.coordinator.join_cluster(
        payload.hostname,
        payload.password,
        payload.fingerprint,
        nodeid=payload.nodeid,
        votes=payload.votes,
        link0=payload.link0,
        link1=payload.link1,
        force=payload.force,
    )
    return {"task": task_id}


@app.get("/cluster/config/totem")
def totem() -> dict:
    """Totem protocol settings."""
    return app.state.coordinator.totem()


@app.get("/cluster/config/qdevice")
def qdevice_status() -> dict:
    """Status of the quorum device, empty when none is configured."""
    return app.state.coordinator.qdevice_status()


@app.get("/cluster/tasks")
def list_tasks() -> dict:
    return {"tasks": app.state.coordinator.tasks.list_tasks()}


@app.get("/cluster/tasks/{task_id}/status")
def task_status(task_id: str) -> dict:
    return app.state.coordinator.tasks.get(task_id).status()


@app.get("/cluster/tasks/{task_id}/log")
def task_log(task_id: str, offset: int = 0, limit: int | None = None) -> dict:
    """Return task log lines with optional pagination."""
    entries = app.state.coordinator.tasks.read_log(task_id, offset=offset, limit=limit)
    return {"lines": entries}


@app.get("/health")
def health() -> dict:
    """Return basic membership information about this node."""
    coordinator = app.state.coordinator
    store = coordinator.store
    store.update(force=True)
    return {
        "node": coordinator.nodename,
        "clustered": store.exists(),
        "quorate": store.has_quorum(),
        "members": len(store.members()),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.main:app", host="0.0.0.0", port=8006, reload=False)
