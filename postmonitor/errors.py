from __future__ import annotations


class MonitorError(Exception):
    """Base class for pipeline failures."""

    kind = "monitor_error"

    def describe(self) -> str:
        detail = str(self) or self.__class__.__name__
        return f"{self.kind}:{detail[:200]}"


class CookieFormatError(MonitorError):
    kind = "cookie_format"


class NavigationError(MonitorError):
    kind = "navigation_failed"


class AuthenticationFailure(MonitorError):
    kind = "auth_failed"


class ChallengeRequired(AuthenticationFailure):
    # Needs a human to clear the verification page; retrying inside the run is pointless.
    kind = "challenge_required"


class PersistenceError(MonitorError):
    kind = "store_error"


class SourceEnumerationError(MonitorError):
    kind = "sources_unavailable"
