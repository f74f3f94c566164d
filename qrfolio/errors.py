"""Exception types shared across qrfolio."""


class QrFolioError(Exception):
    """Base class for every error raised by qrfolio."""


class EncodingError(QrFolioError):
    """A payload could not be built (e.g. unrepresentable text in a folio token)."""


class DecodeError(QrFolioError):
    """A folio token is empty, truncated, not JSON or carries no profile fields."""


class CaptureError(QrFolioError):
    """The rendering surface could not produce a raster."""


class LogoError(QrFolioError):
    """An uploaded logo was rejected."""


class PipelineError(QrFolioError):
    """An export stage failed; the whole export is aborted."""

    def __init__(self, stage: str, cause: BaseException | None = None):
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"export stage '{stage}' failed{detail}")
