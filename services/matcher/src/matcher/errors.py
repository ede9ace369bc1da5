from __future__ import annotations


class MatcherError(Exception):
    status_code = 500

    def __init__(self, msg: str) -> None:
        super().__init__(msg)
        self.msg = msg


class NotFoundError(MatcherError):
    status_code = 404


class UnauthorizedError(MatcherError):
    status_code = 401


class UpstreamError(MatcherError):
    """Completion provider failed or returned something unusable."""

    status_code = 502


class RecommendationError(MatcherError):
    status_code = 500
