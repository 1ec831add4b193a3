import asyncio
import base64
import hashlib
import logging
import os
from string import Template
from time import perf_counter
from typing import AsyncIterator, List, Optional

import httpx
from httpx import Response

from foureyes.hosting.base import HostingBaseAdapter
from foureyes.hosting.exceptions import (
    HostingClientError,
    HostingClientGeneralError,
    HostingMisconfiguredCredentials,
    HostingObjectNotFoundError,
    HostingRateLimitError,
    HostingRepoNotFoundError,
    HostingServer5xxCodeError,
    HostingServerUnreachableError,
    HostingUnauthorizedError,
)
from foureyes.hosting.response_types import (
    ProviderComment,
    ProviderCommit,
    ProviderPull,
)
from foureyes.metrics import Counter, Histogram, inc_counter

log = logging.getLogger(__name__)

GITHUB_API_CALL_COUNTER = Counter(
    "git_provider_api_calls_github",
    "Number of times github called this endpoint",
    ["endpoint"],
)

GITHUB_API_ERROR_COUNTER = Counter(
    "git_provider_api_errors_github",
    "Number of failed calls to github, by reason",
    ["reason"],
)

GITHUB_API_LATENCY = Histogram(
    "git_provider_api_latency_seconds_github",
    "Time taken by a single http call to github",
)


GITHUB_API_ENDPOINTS = {
    "get_github_integration_token": {
        "counter": GITHUB_API_CALL_COUNTER.labels(
            endpoint="get_github_integration_token"
        ),
        "url_template": Template(
            "${api_endpoint}/app/installations/${integration_id}/access_tokens"
        ),
    },
    "make_http_call_retry": {
        "counter": GITHUB_API_CALL_COUNTER.labels(endpoint="make_http_call_retry"),
        "url_template": "",  # no url template, just counter
    },
    "get_commit": {
        "counter": GITHUB_API_CALL_COUNTER.labels(endpoint="get_commit"),
        "url_template": Template("/repos/${slug}/commits/${commit}"),
    },
    "get_pull_request": {
        "counter": GITHUB_API_CALL_COUNTER.labels(endpoint="get_pull_request"),
        "url_template": Template("/repos/${slug}/pulls/${pullid}"),
    },
    "list_issue_comments": {
        "counter": GITHUB_API_CALL_COUNTER.labels(endpoint="list_issue_comments"),
        "url_template": Template("/repos/${slug}/issues/${issueid}/comments"),
    },
    "set_commit_status": {
        "counter": GITHUB_API_CALL_COUNTER.labels(endpoint="set_commit_status"),
        "url_template": Template("/repos/${slug}/statuses/${commit}"),
    },
}

# Gateway errors are worth another attempt on reads. Writes never get retried.
RETRIABLE_READ_STATUSES = [502, 503, 504]


class Github(HostingBaseAdapter):
    service = "github"

    def __init__(self, *args, api_url=None, retry_backoff=0.5, **kwargs):
        super().__init__(*args, **kwargs)
        self._api_url = (api_url or "https://api.github.com").strip("/")
        self._retry_backoff = retry_backoff

    @property
    def api_url(self):
        return self._api_url

    @classmethod
    def count_and_get_url_template(cls, url_name):
        GITHUB_API_ENDPOINTS[url_name]["counter"].inc()
        return GITHUB_API_ENDPOINTS[url_name]["url_template"]

    async def api(self, *args, token=None, **kwargs):
        """
        Makes a single http request to GitHub and returns the parsed response
        """
        token_to_use = token or self.token
        if not token_to_use:
            raise HostingMisconfiguredCredentials()
        response = await self.make_http_call(*args, token_to_use=token_to_use, **kwargs)
        return self._parse_response(response)

    async def paginated_api_generator(
        self, client, method, url_name, token=None, params=None, **url_kwargs
    ):
        """
        Generator that requests pages from GitHub and yields each page as they come.
        Continues to request pages while there's a link to the next page.
        """
        token_to_use = token or self.token
        if not token_to_use:
            raise HostingMisconfiguredCredentials()
        url = self.count_and_get_url_template(url_name=url_name).substitute(
            **url_kwargs
        )
        # The next link already carries the query string of the first request
        page_params = params
        while url:
            response = await self.make_http_call(
                client,
                method,
                url,
                token_to_use=token_to_use,
                statuses_to_retry=RETRIABLE_READ_STATUSES,
                params=page_params,
            )
            yield self._parse_response(response)
            url = response.links.get("next", {}).get("url", "")
            page_params = None
            if url:
                GITHUB_API_ENDPOINTS[url_name]["counter"].inc()

    def _parse_response(self, res: Response):
        if res.status_code == 204:
            return None
        elif res.headers.get("Content-Type", "")[:16] == "application/json":
            return res.json()
        else:
            try:
                return res.text
            except UnicodeDecodeError as uerror:
                log.warning(
                    "Unable to parse Github response",
                    extra=dict(
                        first_bytes=res.content[:100],
                        final_bytes=res.content[-100:],
                        errored_bytes=res.content[
                            (uerror.start - 10) : (uerror.start + 10)
                        ],
                        declared_contenttype=res.headers.get("content-type"),
                    ),
                )
                return res.text

    async def make_http_call(
        self,
        client,
        method,
        url,
        body=None,
        headers=None,
        token_to_use=None,
        statuses_to_retry=None,
        params=None,
    ) -> Response:
        _headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": os.getenv("USER_AGENT", "foureyes"),
        }
        if token_to_use:
            _headers["Authorization"] = "token %s" % token_to_use["key"]
        _headers.update(headers or {})
        log_dict = {}

        method = (method or "GET").upper()
        if url[0] == "/":
            log_dict = dict(
                event="api",
                endpoint=url,
                method=method,
                repo_slug=self.slug,
                loggable_token=self.loggable_token(token_to_use),
            )
            url = self.api_url + url

        kwargs = dict(
            json=body if body else None,
            headers=_headers,
            params=params,
            follow_redirects=False,
        )
        max_number_retries = 3
        for current_retry in range(1, max_number_retries + 1):
            try:
                started = perf_counter()
                res = await client.request(method, url, **kwargs)
                time_taken = perf_counter() - started
                GITHUB_API_LATENCY.observe(time_taken)
                if current_retry > 1:
                    # count retries without getting a url
                    self.count_and_get_url_template(url_name="make_http_call_retry")
                logged_body = None
                if res.status_code >= 300 and res.text is not None:
                    logged_body = res.text
                log.log(
                    logging.WARNING if res.status_code >= 300 else logging.INFO,
                    "Github HTTP %s",
                    res.status_code,
                    extra=dict(
                        current_retry=current_retry,
                        time_taken=int(time_taken * 1000),
                        body=logged_body,
                        rl_remaining=res.headers.get("X-RateLimit-Remaining"),
                        rl_limit=res.headers.get("X-RateLimit-Limit"),
                        rl_reset_time=res.headers.get("X-RateLimit-Reset"),
                        retry_after=res.headers.get("Retry-After"),
                        **log_dict,
                    ),
                )
            except httpx.TransportError:
                inc_counter(GITHUB_API_ERROR_COUNTER, labels=dict(reason="unreachable"))
                raise HostingServerUnreachableError(
                    "GitHub was not able to be reached."
                )
            if (res.status_code == 403 or res.status_code == 429) and (
                (
                    # Primary rate limit
                    int(res.headers.get("X-RateLimit-Remaining", -1)) == 0
                    or
                    # Secondary rate limit
                    res.headers.get("Retry-After") is not None
                )
            ):
                is_primary_rate_limit = (
                    int(res.headers.get("X-RateLimit-Remaining", -1)) == 0
                )
                inc_counter(GITHUB_API_ERROR_COUNTER, labels=dict(reason="ratelimit"))
                retry_after = res.headers.get("Retry-After")
                message = f"Github API rate limit error: {res.reason_phrase if is_primary_rate_limit else 'secondary rate limit'}"
                raise HostingRateLimitError(
                    response_data=res.text,
                    message=message,
                    reset=res.headers.get("X-RateLimit-Reset"),
                    retry_after=(int(retry_after) if retry_after is not None else None),
                )
            if (
                not statuses_to_retry
                or res.status_code not in statuses_to_retry
                or current_retry >= max_number_retries  # Last retry
            ):
                if res.status_code == 599:
                    inc_counter(
                        GITHUB_API_ERROR_COUNTER, labels=dict(reason="unreachable")
                    )
                    raise HostingServerUnreachableError(
                        "Github was not able to be reached, server timed out."
                    )
                elif res.status_code >= 500:
                    inc_counter(GITHUB_API_ERROR_COUNTER, labels=dict(reason="5xx"))
                    raise HostingServer5xxCodeError("Github is having 5xx issues")
                elif res.status_code == 401:
                    message = f"Github API unauthorized error: {res.reason_phrase}"
                    inc_counter(
                        GITHUB_API_ERROR_COUNTER, labels=dict(reason="unauthorized")
                    )
                    raise HostingUnauthorizedError(
                        response_data=res.text, message=message
                    )
                elif res.status_code >= 300:
                    message = f"Github API: {res.reason_phrase}"
                    inc_counter(
                        GITHUB_API_ERROR_COUNTER, labels=dict(reason="clienterror")
                    )
                    raise HostingClientGeneralError(
                        res.status_code, response_data=res.text, message=message
                    )
                return res
            else:
                log.info(
                    "Retrying request to GitHub",
                    extra=dict(status=res.status_code, **log_dict),
                )
                await asyncio.sleep(self._retry_backoff * 2 ** (current_retry - 1))

    # Commits
    # -------
    async def get_commit(self, commit, token=None) -> ProviderCommit:
        # https://docs.github.com/en/rest/commits/commits#get-a-commit
        if not commit:
            # Without a sha the url would list the repo commits instead
            raise HostingObjectNotFoundError(
                response_data=None, message="No commit id given"
            )
        try:
            async with self.get_client() as client:
                url = self.count_and_get_url_template(url_name="get_commit").substitute(
                    slug=self.slug, commit=commit
                )
                res = await self.api(
                    client,
                    "get",
                    url,
                    statuses_to_retry=RETRIABLE_READ_STATUSES,
                    token=token,
                )
        except HostingClientError as ce:
            if ce.code == 422:
                raise HostingObjectNotFoundError(
                    response_data=ce.response_data,
                    message=f"Commit with id {commit} does not exist",
                )
            if ce.code == 404:
                raise HostingRepoNotFoundError(
                    response_data=ce.response_data,
                    message=f"Repo {self.slug} cannot be found by this user",
                )
            raise
        return dict(
            author=dict(
                id=str(res["author"]["id"]) if res.get("author") else None,
                username=res["author"]["login"] if res.get("author") else None,
            ),
            commitid=commit,
            parents=[p["sha"] for p in res.get("parents", [])],
            message=res["commit"]["message"],
            timestamp=res["commit"].get("committer", {}).get("date"),
        )

    async def set_commit_status(
        self,
        commit,
        status,
        context,
        description,
        url=None,
        token=None,
    ):
        # https://docs.github.com/en/rest/commits/statuses#create-a-commit-status
        assert status in ("pending", "success", "error", "failure"), "status not valid"
        async with self.get_client() as client:
            api_url = self.count_and_get_url_template(
                url_name="set_commit_status"
            ).substitute(slug=self.slug, commit=commit)
            body = dict(state=status, context=context, description=description)
            if url:
                body["target_url"] = url
            return await self.api(client, "post", api_url, body=body, token=token)

    # Pull Requests
    # -------------
    def _pull(self, pull) -> ProviderPull:
        return dict(
            author=dict(
                id=str(pull["user"]["id"]) if pull.get("user") else None,
                username=pull["user"]["login"] if pull.get("user") else None,
            ),
            state="merged" if pull.get("merged") else pull["state"],
            title=pull["title"],
            id=str(pull["number"]),
            number=str(pull["number"]),
        )

    async def get_pull_request(self, pullid, token=None) -> ProviderPull:
        # https://docs.github.com/en/rest/pulls/pulls#get-a-pull-request
        async with self.get_client() as client:
            try:
                url = self.count_and_get_url_template(
                    url_name="get_pull_request"
                ).substitute(slug=self.slug, pullid=pullid)
                res = await self.api(
                    client,
                    "get",
                    url,
                    statuses_to_retry=RETRIABLE_READ_STATUSES,
                    token=token,
                )
            except HostingClientError as ce:
                if ce.code == 404:
                    raise HostingObjectNotFoundError(
                        response_data=ce.response_data,
                        message=f"Pull Request {pullid} not found",
                    )
                raise
        return self._pull(res)

    # Comments
    # --------
    def _comment(self, comment) -> ProviderComment:
        return dict(
            id=str(comment["id"]),
            author=dict(
                id=str(comment["user"]["id"]) if comment.get("user") else None,
                username=comment["user"]["login"] if comment.get("user") else None,
            ),
            body=comment.get("body") or "",
        )

    async def list_issue_comments(
        self, issueid, per_page=10, token=None
    ) -> AsyncIterator[List[ProviderComment]]:
        # https://docs.github.com/en/rest/issues/comments#list-issue-comments
        # Comments come back in ascending order of creation
        async with self.get_client() as client:
            try:
                async for page in self.paginated_api_generator(
                    client,
                    "get",
                    "list_issue_comments",
                    token=token,
                    params=dict(per_page=per_page),
                    slug=self.slug,
                    issueid=issueid,
                ):
                    yield [self._comment(c) for c in page or []]
            except HostingClientError as ce:
                if ce.code == 404:
                    raise HostingObjectNotFoundError(
                        response_data=ce.response_data,
                        message=f"Issue {issueid} not found",
                    )
                raise

    def loggable_token(self, token) -> Optional[str]:
        """Gets a "loggable" version of the current repo token.

        The idea here is to get something in the logs that is enough for us to make comparisons like
            "this log line is probably using the same token as this log line"

        But nothing else. Installation tokens have no username attached, so we mix the
            token with a fixed salt and the repo slug, sha256 it, and only log the first
            5 chars of the base64 digest.

        Returns:
            str: A good enough string to tell tokens apart
        """
        if token is None or token.get("key") is None:
            return "notoken"
        if token.get("username"):
            username = token.get("username")
            return f"{username}'s token"
        some_salt = "foureyes-loggable-token-salt-3c9d1e".encode()
        hasher = hashlib.sha256()
        hasher.update(some_salt)
        hasher.update(self.service.encode())
        if self.slug:
            hasher.update(self.slug.encode())
        hasher.update(token.get("key").encode())
        return base64.b64encode(hasher.digest()).decode()[:5]
