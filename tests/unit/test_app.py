import orjson
import pytest
import requests
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from foureyes.app import create_app, default_provider_factory
from foureyes.github import InvalidInstallationError
from foureyes.hosting.github import Github
from foureyes.policy.status import StatusReport, StatusState
from foureyes.webhooks import PushEvent
from foureyes.webhooks.signature import compute_signature

SECRET = "It's a Secret to Everybody"
SHA = "1a2b3c4d5e6f7a8b9c0d1a2b3c4d5e6f7a8b9c0d"


def push_body(ref="refs/heads/staging"):
    return orjson.dumps(
        {
            "ref": ref,
            "after": SHA,
            "head_commit": {"id": SHA, "message": "Merge #7\n\n7: A r=bob a=alice"},
            "repository": {
                "name": "example-repo",
                "owner": {"name": "example-org", "login": "example-org"},
            },
        }
    )


def signed_headers(body, event="push", algorithm="sha1", secret=SECRET):
    header = "X-Hub-Signature" if algorithm == "sha1" else "X-Hub-Signature-256"
    return {
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": "72d3162e-cc78-11e3-81ab-4c9367dc0958",
        "Content-Type": "application/json",
        header: compute_signature(body, secret, algorithm),
    }


def deliveries(event, outcome):
    return (
        REGISTRY.get_sample_value(
            "foureyes_webhook_deliveries_total",
            labels={"event": event, "outcome": outcome},
        )
        or 0
    )


@pytest.fixture
def token_getter(mocker):
    return mocker.MagicMock(return_value="installation_token")


@pytest.fixture
def adapter(mocker):
    return mocker.MagicMock(slug="example-org/example-repo")


@pytest.fixture
def provider_factory(mocker, adapter):
    return mocker.MagicMock(return_value=adapter)


@pytest.fixture
def mocked_check(mocker):
    return mocker.patch(
        "foureyes.app.check_push_event",
        new_callable=mocker.AsyncMock,
        return_value=StatusReport(state=StatusState.success, description="ok"),
    )


@pytest.fixture
def client(settings, provider_factory, token_getter):
    app = create_app(
        settings, provider_factory=provider_factory, token_getter=token_getter
    )
    return TestClient(app)


class TestWebhookEndpoint(object):
    def test_push_to_protected_ref(
        self,
        client,
        settings,
        adapter,
        provider_factory,
        token_getter,
        mocked_check,
    ):
        before = deliveries("push", "success")
        body = push_body()
        res = client.post("/webhook", content=body, headers=signed_headers(body))
        assert res.status_code == 204
        expected_event = PushEvent(
            ref="refs/heads/staging",
            head_commit_sha=SHA,
            head_commit_message="Merge #7\n\n7: A r=bob a=alice",
            repository_owner="example-org",
            repository_name="example-repo",
        )
        token_getter.assert_called_once_with(settings)
        provider_factory.assert_called_once_with(
            settings, expected_event, "installation_token"
        )
        mocked_check.assert_called_once_with(adapter, expected_event, settings)
        assert deliveries("push", "success") - before == 1

    def test_push_signed_with_sha256(self, client, mocked_check):
        body = push_body()
        res = client.post(
            "/webhook", content=body, headers=signed_headers(body, algorithm="sha256")
        )
        assert res.status_code == 204
        assert mocked_check.call_count == 1

    def test_push_to_unprotected_ref(self, client, token_getter, mocked_check):
        before = deliveries("push", "irrelevant")
        body = push_body(ref="refs/heads/main")
        res = client.post("/webhook", content=body, headers=signed_headers(body))
        assert res.status_code == 204
        assert not token_getter.called
        assert not mocked_check.called
        assert deliveries("push", "irrelevant") - before == 1

    def test_push_with_bad_signature(self, client, token_getter, mocked_check):
        before = deliveries("push", "unauthorized")
        body = push_body()
        res = client.post(
            "/webhook", content=body, headers=signed_headers(body, secret="guess")
        )
        assert res.status_code == 401
        assert not token_getter.called
        assert not mocked_check.called
        assert deliveries("push", "unauthorized") - before == 1

    def test_push_with_tampered_body(self, client, mocked_check):
        body = push_body()
        headers = signed_headers(body)
        res = client.post(
            "/webhook", content=push_body(ref="refs/heads/trying"), headers=headers
        )
        assert res.status_code == 401
        assert not mocked_check.called

    def test_push_without_signature(self, client, mocked_check):
        body = push_body()
        headers = signed_headers(body)
        del headers["X-Hub-Signature"]
        res = client.post("/webhook", content=body, headers=headers)
        assert res.status_code == 401
        assert not mocked_check.called

    def test_push_with_unsupported_algorithm(self, client, mocked_check):
        body = push_body()
        headers = signed_headers(body)
        headers["X-Hub-Signature"] = headers["X-Hub-Signature"].replace(
            "sha1=", "md5="
        )
        res = client.post("/webhook", content=body, headers=headers)
        assert res.status_code == 401

    def test_push_with_invalid_json(self, client, mocked_check):
        before = deliveries("push", "bad_request")
        body = b"{not json"
        res = client.post("/webhook", content=body, headers=signed_headers(body))
        assert res.status_code == 400
        assert not mocked_check.called
        assert deliveries("push", "bad_request") - before == 1

    def test_push_without_installation_token(
        self, client, token_getter, provider_factory, mocked_check
    ):
        token_getter.side_effect = InvalidInstallationError("installation_not_found")
        body = push_body()
        res = client.post("/webhook", content=body, headers=signed_headers(body))
        assert res.status_code == 502
        assert not provider_factory.called
        assert not mocked_check.called

    def test_push_token_exchange_network_error(
        self, client, token_getter, mocked_check
    ):
        token_getter.side_effect = requests.exceptions.ConnectionError("refused")
        body = push_body()
        res = client.post("/webhook", content=body, headers=signed_headers(body))
        assert res.status_code == 502
        assert not mocked_check.called

    def test_ping(self, client, token_getter, mocked_check):
        before = deliveries("ping", "pong")
        body = orjson.dumps({"zen": "Design for failure.", "hook_id": 12345678})
        res = client.post(
            "/webhook", content=body, headers=signed_headers(body, event="ping")
        )
        assert res.status_code == 204
        assert not token_getter.called
        assert not mocked_check.called
        assert deliveries("ping", "pong") - before == 1

    def test_ping_with_bad_signature(self, client):
        body = orjson.dumps({"zen": "Design for failure."})
        res = client.post(
            "/webhook",
            content=body,
            headers=signed_headers(body, event="ping", secret="guess"),
        )
        assert res.status_code == 401

    def test_unrecognized_event(self, client, token_getter, mocked_check):
        body = orjson.dumps({"action": "opened"})
        res = client.post(
            "/webhook", content=body, headers=signed_headers(body, event="issues")
        )
        assert res.status_code == 204
        assert not token_getter.called
        assert not mocked_check.called

    def test_unrecognized_event_is_still_authenticated(self, client):
        body = orjson.dumps({"action": "opened"})
        res = client.post(
            "/webhook",
            content=body,
            headers=signed_headers(body, event="issues", secret="guess"),
        )
        assert res.status_code == 401

    def test_only_post_is_allowed(self, client):
        assert client.get("/webhook").status_code == 405


class TestDefaultProviderFactory(object):
    def test_default_provider_factory(self, settings):
        event = PushEvent(
            ref="refs/heads/staging",
            head_commit_sha=SHA,
            repository_owner="example-org",
            repository_name="example-repo",
        )
        adapter = default_provider_factory(settings, event, "installation_token")
        assert isinstance(adapter, Github)
        assert adapter.slug == "example-org/example-repo"
        assert adapter.token == {"key": "installation_token"}
        assert adapter.api_url == "https://api.github.com"
