from typing import AsyncIterator, List, Optional

import httpx

from foureyes.hosting.response_types import (
    ProviderComment,
    ProviderCommit,
    ProviderPull,
)


class HostingBaseAdapter(object):
    _token = None
    verify_ssl = None

    def __init__(
        self,
        timeouts=None,
        token=None,
        verify_ssl=None,
        **kwargs,
    ):
        self._timeouts = timeouts or [10, 30]
        self._token = token
        self.data = {"owner": {}, "repo": {}}
        self.verify_ssl = verify_ssl
        self.data.update(kwargs)

    def __repr__(self):
        return "<%s slug=%s>" % (self.service, self.slug)

    def get_client(self, timeouts: List[int] = []) -> httpx.AsyncClient:
        if timeouts:
            timeout = httpx.Timeout(timeouts[1], connect=timeouts[0])
        else:
            timeout = httpx.Timeout(self._timeouts[1], connect=self._timeouts[0])
        return httpx.AsyncClient(
            verify=self.verify_ssl if self.verify_ssl is not None else True,
            timeout=timeout,
        )

    def set_token(self, token):
        self._token = token

    @property
    def token(self):
        return self._token

    @property
    def slug(self):
        if self.data.get("owner") and self.data.get("repo"):
            if self.data["owner"].get("username") and self.data["repo"].get("name"):
                return "%s/%s" % (
                    self.data["owner"]["username"],
                    self.data["repo"]["name"],
                )

    # COMMIT LOGIC

    async def get_commit(self, commit: str, token=None) -> ProviderCommit:
        raise NotImplementedError()

    async def set_commit_status(
        self,
        commit: str,
        status: str,
        context: str,
        description: str,
        url: Optional[str] = None,
        token=None,
    ) -> dict:
        """Creates a commit status on `commit`

        Args:
            commit (str): The sha the status is attached to
            status (str): One of "pending", "success", "error" or "failure"
            context (str): The name that identifies this status on the provider
            description (str): Short human readable explanation of the state
            url (str, optional): A link shown next to the status
            token (optional): An optional token that can be used instead of the client default

        Raises:
            NotImplementedError: If the adapter does not have this ability implemented
            exceptions.HostingClientError: If any HTTP error occurs
        """
        raise NotImplementedError()

    # PULL REQUEST LOGIC

    async def get_pull_request(self, pullid, token=None) -> ProviderPull:
        raise NotImplementedError()

    # COMMENT LOGIC

    def list_issue_comments(
        self, issueid, per_page: int = 10, token=None
    ) -> AsyncIterator[List[ProviderComment]]:
        """Yields the comments of an issue (or pull request) one page at a time,
        oldest first. Pages are only requested as they are consumed.
        """
        raise NotImplementedError()
