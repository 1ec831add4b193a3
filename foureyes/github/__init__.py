import logging
from time import time
from typing import Literal

import jwt
import requests

from foureyes.config import FourEyesSettings
from foureyes.hosting.github import Github

log = logging.getLogger(__name__)


InstallationErrorCause = (
    Literal["installation_not_found"]
    | Literal["permission_error"]
    | Literal["requires_authentication"]
    | Literal["installation_suspended"]
    | Literal["validation_failed_or_spammed"]
    | Literal["rate_limit"]
)


class InvalidInstallationError(Exception):
    def __init__(self, error_cause: InstallationErrorCause, *args: object) -> None:
        super().__init__(error_cause, *args)
        self.error_cause = error_cause


def decide_installation_error_cause(
    response: requests.Response,
) -> InstallationErrorCause:
    # https://docs.github.com/en/rest/apps/apps?apiVersion=2022-11-28#create-an-installation-access-token-for-an-app
    is_suspended = (
        response.json().get("message") == "This installation has been suspended"
    )
    is_rate_limit = (
        "X-RateLimit-Remaining" in response.headers or "Retry-After" in response.headers
    )
    match response.status_code:
        case 401:
            return "requires_authentication"
        case 404:
            return "installation_not_found"
        case 422:
            return "validation_failed_or_spammed"
        case 403:
            if is_suspended:
                return "installation_suspended"
            elif is_rate_limit:
                return "rate_limit"
            else:
                return "permission_error"


def get_github_jwt_token(app_id: int, private_key: str, expires: int = 500) -> str:
    # https://docs.github.com/en/apps/creating-github-apps/authenticating-with-a-github-app/generating-a-json-web-token-jwt-for-a-github-app
    now = int(time())
    payload = {
        # issued at time
        "iat": now,
        # JWT expiration time (max 10 minutes)
        "exp": now + int(expires),
        # App's GitHub identifier
        "iss": app_id,
    }
    return jwt.encode(payload, private_key, algorithm="RS256")


def get_github_integration_token(settings: FourEyesSettings) -> str:
    """Exchanges the app's JWT for a short-lived installation access token.

    This is a blocking call.
    """
    token = get_github_jwt_token(
        settings.app_id, settings.private_key, settings.jwt_expires
    )
    url = Github.count_and_get_url_template(
        url_name="get_github_integration_token"
    ).substitute(
        api_endpoint=settings.api_url, integration_id=settings.installation_id
    )
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": "foureyes",
        "Authorization": "Bearer %s" % token,
    }
    res = requests.post(
        url,
        headers=headers,
        timeout=settings.timeouts,
        verify=settings.verify_ssl if settings.verify_ssl is not None else True,
    )
    if res.status_code in [401, 403, 404, 422]:
        error_cause = decide_installation_error_cause(res)
        log.warning(
            "Installation could not be found to fetch token from or unauthorized",
            extra=dict(
                app_id=settings.app_id,
                installation_id=settings.installation_id,
                api_endpoint=settings.api_url,
                error_cause=error_cause,
                github_error=res.json().get("message"),
            ),
        )
        raise InvalidInstallationError(error_cause)
    try:
        res.raise_for_status()
    except requests.exceptions.HTTPError:
        log.exception(
            "Github Integration Error",
            extra=dict(code=res.status_code, text=res.text),
        )
        raise
    res_json = res.json()
    log.info(
        "Requested and received a Github Integration token",
        extra=dict(
            expires_at=res_json.get("expires_at"),
            permissions=res_json.get("permissions"),
            repository_selection=res_json.get("repository_selection"),
            installation_id=settings.installation_id,
        ),
    )
    return res_json["token"]
