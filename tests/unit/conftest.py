import httpx
from pytest import fixture

from foureyes.hosting.github import Github


@fixture
def magic(mocker):
    """
    Shorthand for mocker.MagicMock. It's magic!
    """
    return mocker.MagicMock


@fixture
def github_handler():
    return Github(
        repo=dict(name="example-repo"),
        owner=dict(username="example-org"),
        token=dict(key="installation_token"),
        retry_backoff=0,
    )


@fixture
def api_response():
    """
    Builds the httpx.Response GitHub would send for `data`, optionally with a
    link to the next page
    """

    def api_response(data, status_code=200, next_url=None, headers=None):
        _headers = dict(headers or {})
        if next_url:
            _headers["Link"] = f'<{next_url}>; rel="next"'
        return httpx.Response(status_code=status_code, json=data, headers=_headers)

    return api_response
