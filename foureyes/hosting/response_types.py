from typing import Literal, TypedDict


class ProviderAuthor(TypedDict):
    id: str | None
    username: str | None


class ProviderCommit(TypedDict):
    author: ProviderAuthor
    commitid: str
    parents: list[str]
    message: str
    timestamp: str | None


class ProviderPull(TypedDict):
    author: ProviderAuthor
    state: Literal["open", "closed", "merged"]
    title: str
    id: str
    number: str


class ProviderComment(TypedDict):
    id: str
    author: ProviderAuthor
    body: str
