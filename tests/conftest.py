"""Shared test fixtures.

The control plane and the cluster security API are faked in memory and served
through httpx.MockTransport, so the real clients run end to end without a
network.
"""

import base64
import json

import httpx
import pytest

from ess_broker.clients.cluster import ClusterClient
from ess_broker.clients.control_plane import ControlPlaneClient
from ess_broker.clients.models import DeploymentTemplate
from ess_broker.config.catalog import ServicePlan
from ess_broker.config.settings import _ENV_MAP, ProviderConfig
from ess_broker.provider import Provider

SEED = "test-seed"
CONTROL_PLANE_URL = "https://cloud.test"
CLUSTER_HOST = "abc123.es.cloud.test"
DASHBOARD_HOST = "abc123.kb.cloud.test"
HTTPS_PORT = 9243
NEW_DEPLOYMENT_ID = "0837d2cd080743e9be080bca163c0b92"
RESET_PASSWORD = "issued-by-reset"


def make_deployment(deployment_id, name, status="started", kibana_status=None):
    """Build a deployment payload as returned by get and search."""
    return {
        "id": deployment_id,
        "name": name,
        "healthy": True,
        "resources": {
            "elasticsearch": [
                {
                    "ref_id": "main-elasticsearch",
                    "id": "es-" + deployment_id[:8],
                    "region": "gcp-us-central1",
                    "info": {
                        "status": status,
                        "healthy": True,
                        "metadata": {
                            "endpoint": CLUSTER_HOST,
                            "ports": {"http": 9200, "https": HTTPS_PORT},
                        },
                    },
                }
            ],
            "kibana": [
                {
                    "ref_id": "main-kibana",
                    "id": "kb-" + deployment_id[:8],
                    "region": "gcp-us-central1",
                    "info": {
                        "status": kibana_status or status,
                        "healthy": True,
                        "metadata": {
                            "endpoint": DASHBOARD_HOST,
                            "ports": {"http": 9200, "https": HTTPS_PORT},
                        },
                    },
                }
            ],
        },
    }


def basic_credentials(request: httpx.Request) -> tuple[str | None, str | None]:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Basic "):
        return None, None
    username, _, password = base64.b64decode(header[6:]).decode().partition(":")
    return username, password


class FakeControlPlane:
    """In-memory deployment control plane."""

    def __init__(self, deployments=None):
        self.deployments = {d["id"]: d for d in deployments or []}
        self.requests = []
        self.created = []
        self.failures = {}
        self.on_reset = None

    def add(self, deployment):
        self.deployments[deployment["id"]] = deployment

    def fail(self, method, path, status_code, body=None):
        """Answer (method, path) with an error status from now on."""
        self.failures[(method, path)] = (status_code, body or {"errors": [{"code": "fake"}]})

    def paths(self):
        return [(method, path) for method, path, _ in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path.removeprefix("/api/v1")
        body = json.loads(request.content) if request.content else None
        self.requests.append((method, path, request))

        if (method, path) in self.failures:
            status_code, error = self.failures[(method, path)]
            return httpx.Response(status_code, json=error)

        parts = path.strip("/").split("/")
        if method == "POST" and path == "/deployments":
            self.created.append((body, dict(request.url.params)))
            self.add(make_deployment(NEW_DEPLOYMENT_ID, body["name"], status="initializing"))
            return httpx.Response(
                200, json={"id": NEW_DEPLOYMENT_ID, "name": body["name"], "created": True}
            )
        if method == "POST" and path == "/deployments/_search":
            name = body["query"]["query_string"]["query"].removeprefix("name: ")
            # query_string search is fuzzy; similar names come back too
            matches = [d for d in self.deployments.values() if name in str(d.get("name"))]
            return httpx.Response(
                200, json={"deployments": matches, "return_count": len(matches)}
            )

        deployment = self.deployments.get(parts[1]) if len(parts) > 1 else None
        if deployment is None:
            return httpx.Response(404, json={"errors": [{"code": "deployments.not_found"}]})

        if method == "GET" and len(parts) == 2:
            return httpx.Response(200, json=deployment)
        if method == "DELETE" and len(parts) == 2:
            del self.deployments[parts[1]]
            return httpx.Response(200, json={"id": parts[1]})
        if method == "POST" and parts[2:] == ["_shutdown"]:
            return httpx.Response(200, json={"id": parts[1], "orphaned": {}})
        if method == "POST" and parts[-1] == "_reset-password":
            if self.on_reset is not None:
                self.on_reset()
            return httpx.Response(200, json={"username": "elastic", "password": RESET_PASSWORD})
        if method == "GET" and len(parts) == 4:
            kind, ref_id = parts[2], parts[3]
            for resource in deployment["resources"].get(kind, []):
                if resource["ref_id"] == ref_id:
                    return httpx.Response(200, json=resource)
            return httpx.Response(404, json={"errors": [{"code": "resource.not_found"}]})
        return httpx.Response(405)


class FakeCluster:
    """In-memory cluster security API with basic-auth checks."""

    def __init__(self, users=None):
        self.users = dict(users or {})
        self.requests = []
        self.opened = []
        self.reachable = True
        self.overrides = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        if not self.reachable:
            raise httpx.ConnectError("connection refused", request=request)
        username, password = basic_credentials(request)
        method, path = request.method, request.url.path
        self.requests.append((method, path, username))

        if username is None or self.users.get(username) != password:
            return httpx.Response(401)
        if (method, path) in self.overrides:
            return httpx.Response(self.overrides[(method, path)])
        if method == "HEAD" and path == "/":
            return httpx.Response(200)
        if path.startswith("/_security/user/"):
            name = path.rsplit("/", 1)[-1]
            if method == "PUT":
                created = name not in self.users
                self.users[name] = json.loads(request.content)["password"]
                return httpx.Response(200, json={"created": created})
            if method == "DELETE":
                if self.users.pop(name, None) is None:
                    return httpx.Response(404, json={"found": False})
                return httpx.Response(200, json={"found": True})
        return httpx.Response(404)

    def factory(self, url, username, password):
        self.opened.append((url, username))
        return ClusterClient(url, username, password, transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def _clear_provider_env(monkeypatch):
    """Keep ESS_PROVIDER_* variables from the host out of the tests."""
    for env_var in _ENV_MAP.values():
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def config():
    return ProviderConfig(
        url=CONTROL_PLANE_URL,
        api_key="test-api-key",
        seed=SEED,
        resync_delay_seconds=0,
        provision_timeout_seconds=5,
        operation_timeout_seconds=5,
    )


@pytest.fixture
def templates():
    return [
        DeploymentTemplate(
            name="small",
            resources={"elasticsearch": [{"ref_id": "main-elasticsearch", "region": "gcp"}]},
        ),
        DeploymentTemplate(name="large", resources={"elasticsearch": []}),
    ]


@pytest.fixture
def plan():
    return ServicePlan(id="uuid-2", name="small")


@pytest.fixture
def control_plane_api():
    return FakeControlPlane()


@pytest.fixture
def cluster_api():
    return FakeCluster()


@pytest.fixture
async def control_plane(config, control_plane_api):
    client = ControlPlaneClient.from_config(
        config, transport=httpx.MockTransport(control_plane_api.handler)
    )
    async with client:
        yield client


@pytest.fixture
async def provider(config, templates, control_plane, control_plane_api, cluster_api):
    """Provider wired to both fakes; a password reset re-keys the cluster admin."""
    control_plane_api.on_reset = lambda: cluster_api.users.__setitem__("elastic", RESET_PASSWORD)
    async with Provider(
        config, templates, control_plane=control_plane, cluster_factory=cluster_api.factory
    ) as p:
        yield p


@pytest.fixture
def deployment_factory():
    """Builds deployment payloads for the fake control plane."""
    return make_deployment
