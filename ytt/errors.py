from __future__ import annotations


class YouTubeServiceError(Exception):
    pass


class CredentialIOError(YouTubeServiceError):
    pass


class TokenFormatError(YouTubeServiceError):
    pass


class AuthError(YouTubeServiceError):
    pass


class NotFoundError(YouTubeServiceError):
    pass


class RemoteError(YouTubeServiceError):
    def __init__(self, message: str, *, cause: BaseException) -> None:
        super().__init__(f"{message}: {cause}")
        self.cause = cause


class OutputWriteError(YouTubeServiceError):
    pass


class ConfigurationError(YouTubeServiceError):
    pass
