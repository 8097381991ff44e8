"""Identity of the end user a query is issued on behalf of."""

from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class CallerContext:
    """
    Caller details forwarded to AFS.

    ip and user_agent become afs:ip / afs:userAgent query parameters and
    the X-Forwarded-For / User-Agent request headers. forwarded_for is the
    proxy chain already attached to the incoming request, if any.
    """
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    forwarded_for: Optional[str] = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "CallerContext":
        """Build a context from a WSGI/CGI environ dict."""
        return cls(
            ip=environ.get("REMOTE_ADDR"),
            user_agent=environ.get("HTTP_USER_AGENT"),
            forwarded_for=environ.get("HTTP_X_FORWARDED_FOR"),
        )

    def forwarded_header(self) -> Optional[str]:
        """Value of X-Forwarded-For, the caller IP appended to the chain."""
        if self.ip is None:
            return None
        if self.forwarded_for:
            return f"{self.forwarded_for}, {self.ip}"
        return self.ip
