from typing import Optional

from starlette.requests import Request
from starlette.responses import Response


class RequestCookieStore:
    """
    Cookie access scoped to one request.

    Reads come from the incoming request; deletions are recorded and written
    onto the outgoing response with ``apply``. A deleted cookie reads as absent
    for the rest of the request.
    """

    def __init__(self, request: Request, *, secure: bool = False):
        self._cookies = dict(request.cookies)
        self._deleted: set[str] = set()
        self._secure = secure

    def get(self, name: str) -> Optional[str]:
        if name in self._deleted:
            return None
        return self._cookies.get(name)

    def delete(self, name: str) -> None:
        self._deleted.add(name)

    @property
    def deleted(self) -> frozenset[str]:
        return frozenset(self._deleted)

    def apply(self, response: Response) -> Response:
        for name in sorted(self._deleted):
            response.delete_cookie(name, path="/", secure=self._secure, httponly=True, samesite="lax")
        return response
