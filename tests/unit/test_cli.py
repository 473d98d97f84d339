"""
tests/unit/test_cli.py - CLI command tests

Commands run through click's CliRunner against httpx.MockTransport and a
scripted socket client; FLOWDEPLOY_HOME points at tmp_path.
"""

import asyncio
import json

import httpx
import pytest
from click.testing import CliRunner

from flowdeploy.base import ClientCommand
from flowdeploy.main import cli
from flowdeploy.services.credential_store import CredentialStore
from tests.conftest import FakeSocketClient, make_user

USER_PAYLOAD = {
    "id": "u1",
    "username": "octocat",
    "email": "octocat@example.com",
    "plan": "free",
    "max_deployments": 1,
    "api_key": "fd_key_1",
}

DEPLOYMENT_PAYLOAD = {
    "id": "dep-1",
    "name": "shop",
    "status": "deployed",
    "frontend_url": "https://shop.flowdeploy.cloud",
}


class FakeServer:
    """Routes (method, path) to JSON responses and records requests."""

    def __init__(self, routes=None):
        self.routes = {
            ("GET", "/api/auth/profile"): (200, {"success": True, "data": USER_PAYLOAD}),
            ("GET", "/api/deployments"): (200, {"success": True, "data": []}),
        }
        self.routes.update(routes or {})
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get(
            (request.method, request.url.path), (404, {"message": "Not found"})
        )
        return httpx.Response(status, json=body)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]


class ScriptedSocket(FakeSocketClient):
    """Replays a build log and a completion once connected."""

    script = [
        ("log", {"message": "Cloning repository"}),
        ("log", {"message": "Installing dependencies"}),
        ("deployment_complete", {"deployment": DEPLOYMENT_PAYLOAD}),
    ]
    instances = []

    def __init__(self):
        super().__init__()
        ScriptedSocket.instances.append(self)

    async def connect(self, url, auth=None, transports=None, **kwargs):
        await super().connect(url, auth=auth, transports=transports)
        loop = asyncio.get_running_loop()
        for name, data in self.script:
            loop.call_soon(self.fire, name, data)


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("FLOWDEPLOY_HOME", str(tmp_path))
    monkeypatch.setenv("FLOWDEPLOY_API_URL", "http://api.test/api")
    monkeypatch.setenv("FLOWDEPLOY_DISCONNECT_GRACE", "0")
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def logged_in(home):
    CredentialStore(home).save("tok-1", make_user())
    return home


@pytest.fixture
def server(monkeypatch):
    def install(routes=None):
        fake = FakeServer(routes)
        monkeypatch.setattr(ClientCommand, "api_transport", httpx.MockTransport(fake))
        return fake

    return install


@pytest.fixture
def runner():
    return CliRunner()


class TestAuthCommands:
    def test_login_saves_credentials(self, runner, home, server):
        fake = server(
            {
                ("POST", "/api/auth/login"): (
                    200,
                    {"success": True, "data": {"token": "tok-9", "user": USER_PAYLOAD}},
                )
            }
        )

        result = runner.invoke(cli, ["auth:login", "-e", "octocat@example.com", "-p", "pw"])

        assert result.exit_code == 0, result.output
        assert "Logged in as octocat" in result.output
        assert CredentialStore(home).load().token == "tok-9"
        assert len(fake.calls("POST", "/api/auth/login")) == 1

    def test_login_failure(self, runner, home, server):
        server({("POST", "/api/auth/login"): (401, {"message": "Invalid credentials"})})

        result = runner.invoke(cli, ["auth:login", "-e", "a@b.c", "-p", "bad"])

        assert result.exit_code == 1
        assert "Invalid credentials" in result.output
        assert CredentialStore(home).load() is None

    def test_signup_field_errors(self, runner, home, server):
        server(
            {
                ("POST", "/api/auth/signup"): (
                    400,
                    {"errors": [{"field": "email", "message": "Email already registered"}]},
                )
            }
        )

        result = runner.invoke(
            cli,
            ["auth:signup", "-u", "octocat", "-e", "a@b.c", "-p", "pw"],
        )

        assert result.exit_code == 1
        assert "Email already registered" in result.output

    def test_whoami_json(self, runner, logged_in, server):
        server()

        result = runner.invoke(cli, ["auth:whoami", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["user"]["username"] == "octocat"
        assert data["stale"] is False

    def test_whoami_requires_login(self, runner, home, server):
        server()

        result = runner.invoke(cli, ["auth:whoami"])

        assert result.exit_code == 1
        assert "Not logged in" in result.output

    def test_logout(self, runner, logged_in, server):
        server()

        result = runner.invoke(cli, ["auth:logout"])

        assert result.exit_code == 0
        assert "Logged out octocat" in result.output
        assert CredentialStore(logged_in).load() is None

    def test_expired_token_logs_out(self, runner, logged_in, server):
        server(
            {
                ("GET", "/api/auth/profile"): (401, {"message": "jwt expired"}),
                ("GET", "/api/deployments"): (401, {"message": "jwt expired"}),
            }
        )

        result = runner.invoke(cli, ["deployments:list"])

        assert result.exit_code == 1
        assert "jwt expired" in result.output
        assert CredentialStore(logged_in).load() is None


class TestDeploymentsCommands:
    def test_list_table(self, runner, logged_in, server):
        server({("GET", "/api/deployments"): (200, {"success": True, "data": [DEPLOYMENT_PAYLOAD]})})

        result = runner.invoke(cli, ["deployments:list"])

        assert result.exit_code == 0, result.output
        assert "shop" in result.output
        assert "dep-1" in result.output

    def test_list_json(self, runner, logged_in, server):
        server({("GET", "/api/deployments"): (200, {"success": True, "data": [DEPLOYMENT_PAYLOAD]})})

        result = runner.invoke(cli, ["deployments:list", "--json"])

        data = json.loads(result.output)
        assert data["deployments"][0]["frontend_url"] == "https://shop.flowdeploy.cloud"

    def test_restart_refreshes_list(self, runner, logged_in, server):
        fake = server({("POST", "/api/deployments/dep-1/restart"): (200, {"success": True})})

        result = runner.invoke(cli, ["deployments:restart", "dep-1"])

        assert result.exit_code == 0, result.output
        assert "Restarted dep-1" in result.output
        assert len(fake.calls("GET", "/api/deployments")) == 1

    def test_delete_needs_confirmation(self, runner, logged_in, server):
        fake = server({("DELETE", "/api/deployments/dep-1"): (200, {"success": True})})

        result = runner.invoke(cli, ["deployments:delete", "dep-1"], input="n\n")

        assert result.exit_code == 0
        assert fake.calls("DELETE", "/api/deployments/dep-1") == []

    def test_logs(self, runner, logged_in, server):
        server(
            {
                ("GET", "/api/deployments/dep-1/logs"): (
                    200,
                    {"success": True, "data": {"logs": ["[build] ok", "done"]}},
                )
            }
        )

        result = runner.invoke(cli, ["deployments:logs", "dep-1"])

        assert "[build] ok" in result.output
        assert "done" in result.output


class TestDeployCommand:
    @pytest.fixture(autouse=True)
    def sockets(self, monkeypatch):
        ScriptedSocket.instances = []
        monkeypatch.setattr(ClientCommand, "socket_client_factory", ScriptedSocket)
        return ScriptedSocket.instances

    def test_deploy_streams_until_complete(self, runner, logged_in, server, sockets):
        fake = server(
            {("POST", "/api/deployments"): (201, {"success": True, "data": {"deployment_id": "dep-1"}})}
        )
        (logged_in / ".env").write_text('# build vars\nA=1\nB="hello world"\n')

        result = runner.invoke(
            cli,
            [
                "deploy",
                "-n",
                "shop",
                "--frontend",
                "https://github.com/octocat/shop",
                "--env-file",
                ".env",
                "-e",
                "A=2",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Cloning repository" in result.output
        assert "https://shop.flowdeploy.cloud" in result.output

        body = json.loads(fake.calls("POST", "/api/deployments")[0].content)
        assert body["env_vars"] == {"A": "2", "B": "hello world"}

        socket = sockets[0]
        assert socket.connect_calls[0]["auth"] == {"token": "tok-1", "deployment_id": "dep-1"}
        assert socket.connect_calls[0]["url"] == "http://api.test"
        assert socket.disconnect_calls == 1

        # once before submitting, once after completion
        assert len(fake.calls("GET", "/api/deployments")) == 2

        log_files = list((logged_in / "logs" / "shop").rglob("*_deploy.log"))
        assert len(log_files) == 1
        assert "Installing dependencies" in log_files[0].read_text()

    def test_deploy_failure(self, runner, logged_in, server, sockets, monkeypatch):
        monkeypatch.setattr(
            ScriptedSocket,
            "script",
            [("log", {"message": "npm ERR!"}), ("deployment_failed", {"error": "Build failed"})],
        )
        server({("POST", "/api/deployments"): (201, {"deployment_id": "dep-1"})})

        result = runner.invoke(
            cli, ["deploy", "-n", "shop", "--backend", "https://github.com/octocat/api", "--json"]
        )

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["status"] == "failed"
        assert data["error"] == "Build failed"
        assert data["logs"] == ["npm ERR!"]

    def test_free_plan_limit_blocks_submission(self, runner, logged_in, server, sockets):
        fake = server({("GET", "/api/deployments"): (200, {"success": True, "data": [DEPLOYMENT_PAYLOAD]})})

        result = runner.invoke(
            cli, ["deploy", "-n", "second", "--frontend", "https://github.com/octocat/two"]
        )

        assert result.exit_code == 1
        assert "allows 1 deployment" in result.output
        assert fake.calls("POST", "/api/deployments") == []
        assert sockets == []

    def test_missing_repository(self, runner, logged_in, server, sockets):
        fake = server()

        result = runner.invoke(cli, ["deploy", "-n", "shop"])

        assert result.exit_code == 1
        assert "repository is required" in result.output
        assert fake.calls("POST", "/api/deployments") == []


class TestLocalCommands:
    def test_env_check_json(self, runner, home):
        (home / ".env").write_text("A=1\nA=2\nEMPTY=\n")

        result = runner.invoke(cli, ["env:check", ".env", "--json"])

        data = json.loads(result.output)
        assert data["variables"] == ["A"]
        assert data["duplicates"] == ["A"]
        assert data["empty"] == ["EMPTY"]

    def test_env_check_masks_values(self, runner, home):
        (home / ".env").write_text("SECRET=supersecret\n")

        result = runner.invoke(cli, ["env:check", ".env"])

        assert result.exit_code == 0, result.output
        assert "supersecret" not in result.output
        assert "1 variable(s) will be sent" in result.output

    def test_config_set_and_show(self, runner, home):
        result = runner.invoke(cli, ["config:set", "request_timeout=12"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["config:show", "--json"])
        data = json.loads(result.output)
        assert data["request_timeout"] == 12.0
        assert data["api_url"] == "http://api.test/api"

    def test_config_set_unknown_key(self, runner, home):
        result = runner.invoke(cli, ["config:set", "colour=blue"])

        assert result.exit_code == 1
        assert "Unknown config key" in result.output

    def test_billing_enterprise_rejected(self, runner, logged_in, server):
        fake = server()

        result = runner.invoke(cli, ["billing:order", "enterprise"])

        assert result.exit_code == 1
        assert "cannot be purchased online" in result.output
        assert fake.calls("POST", "/api/payments/create-order") == []
