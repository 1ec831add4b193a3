"""The webhook endpoint.

Every delivery is authenticated before anything else happens. Responses:

- 204 when the delivery was handled, including pings, pushes to refs we do not
  guard and events we do not care about
- 400 when the authenticated body is not the JSON we expect
- 401 when the signature is missing, malformed or wrong
- 502 when GitHub would not give us an installation token, so no status can
  be published
"""

import logging
from typing import Callable, Optional

import requests
from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from foureyes import hosting
from foureyes.config import FourEyesSettings, load_settings
from foureyes.github import InvalidInstallationError, get_github_integration_token
from foureyes.hosting.base import HostingBaseAdapter
from foureyes.metrics import WEBHOOK_DELIVERIES_COUNTER, inc_counter
from foureyes.policy import check_push_event, is_relevant_ref
from foureyes.webhooks import (
    AuthenticationError,
    DecodeError,
    PushEvent,
    decode_ping_event,
    decode_push_event,
    get_signature_header,
    verify_and_decode,
    verify_signature,
)

log = logging.getLogger(__name__)

ProviderFactory = Callable[[FourEyesSettings, PushEvent, str], HostingBaseAdapter]
TokenGetter = Callable[[FourEyesSettings], str]


def default_provider_factory(
    settings: FourEyesSettings, event: PushEvent, token: str
) -> HostingBaseAdapter:
    return hosting.get(
        "github",
        owner=dict(username=event.repository_owner),
        repo=dict(name=event.repository_name),
        token=dict(key=token),
        api_url=settings.api_url,
        timeouts=list(settings.timeouts),
        verify_ssl=settings.verify_ssl,
        retry_backoff=settings.retry_backoff,
    )


def _no_content(event_type: str, outcome: str) -> Response:
    inc_counter(
        WEBHOOK_DELIVERIES_COUNTER, labels=dict(event=event_type, outcome=outcome)
    )
    return Response(status_code=204)


def _reject(event_type: str, outcome: str, status_code: int) -> Response:
    inc_counter(
        WEBHOOK_DELIVERIES_COUNTER, labels=dict(event=event_type, outcome=outcome)
    )
    return Response(status_code=status_code)


def create_app(
    settings: Optional[FourEyesSettings] = None,
    provider_factory: Optional[ProviderFactory] = None,
    token_getter: Optional[TokenGetter] = None,
) -> FastAPI:
    settings = settings or load_settings()
    provider_factory = provider_factory or default_provider_factory
    token_getter = token_getter or get_github_integration_token

    app = FastAPI(title="foureyes", docs_url=None, redoc_url=None)
    app.state.settings = settings

    async def handle_push(event_type: str, event: PushEvent) -> Response:
        log_extra = dict(
            ref=event.ref, commit=event.head_commit_sha, repo_slug=event.slug
        )
        if not is_relevant_ref(event.ref, settings.protected_refs):
            log.info("Ignoring push to unprotected ref", extra=log_extra)
            return _no_content(event_type, "irrelevant")

        try:
            token = await run_in_threadpool(token_getter, settings)
        except (InvalidInstallationError, requests.RequestException):
            log.exception("Unable to get an installation token", extra=log_extra)
            return _reject(event_type, "no_token", 502)

        adapter = provider_factory(settings, event, token)
        report = await check_push_event(adapter, event, settings)
        return _no_content(event_type, report.state.value)

    @app.post("/webhook")
    async def webhook(request: Request) -> Response:
        event_type = request.headers.get("X-GitHub-Event", "")
        log_extra = dict(
            event_type=event_type, delivery=request.headers.get("X-GitHub-Delivery")
        )
        # The body is read once. The digest and the decoder both work on these bytes
        body = await request.body()
        signature = get_signature_header(
            request.headers, settings.signature_algorithms
        )
        try:
            if event_type == "push":
                event = verify_and_decode(
                    body,
                    settings.webhook_secret,
                    signature,
                    decoder=decode_push_event,
                    supported_algorithms=settings.signature_algorithms,
                )
            elif event_type == "ping":
                verify_and_decode(
                    body,
                    settings.webhook_secret,
                    signature,
                    decoder=decode_ping_event,
                    supported_algorithms=settings.signature_algorithms,
                )
            else:
                verify_signature(
                    body,
                    settings.webhook_secret,
                    signature,
                    settings.signature_algorithms,
                )
        except AuthenticationError as exc:
            log.warning(
                "Rejecting webhook with bad signature",
                extra=dict(reason=type(exc).__name__, **log_extra),
            )
            return _reject(event_type, "unauthorized", 401)
        except DecodeError:
            log.warning("Rejecting undecodable webhook", extra=log_extra, exc_info=True)
            return _reject(event_type, "bad_request", 400)

        if event_type == "push":
            return await handle_push(event_type, event)
        if event_type == "ping":
            log.info("Received ping", extra=log_extra)
            return _no_content(event_type, "pong")
        log.info("Ignoring unrecognized event", extra=log_extra)
        return _no_content(event_type, "ignored")

    return app
