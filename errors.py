"""Error taxonomy for the publishing pipeline and scheduler."""


class PublishError(Exception):
    """Base class for every failure raised while publishing a product."""


class ConfigurationError(PublishError):
    """Required credentials or settings are missing from the environment."""


class NoImagesError(PublishError):
    """The product has no image that can be published."""


class NotLinkedError(PublishError):
    """No Instagram Business account is linked to the Facebook Page."""


class UpstreamError(PublishError):
    """The Graph API returned a non-2xx reply or an embedded error object.

    The vendor message is kept verbatim so operators can act on it.
    """

    def __init__(self, message: str, status_code: int | None = None, code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ContainerError(PublishError):
    """Raised when an Instagram media container fails processing."""


class MediaNotReadyError(PublishError):
    """An Instagram media container did not finish processing in time."""


class UnknownPlatformError(PublishError):
    """The requested platform is neither Facebook nor Instagram."""


class InvalidScheduleError(PublishError):
    """A schedule time could not be parsed or is not in the future."""


class ScheduleNotFoundError(PublishError):
    """A scheduled post or its product does not exist for this user."""


class ScheduleInProgressError(PublishError):
    """The scheduled post is being published and cannot be changed."""
