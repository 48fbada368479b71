"""Service-layer errors. Routers translate these into HTTP responses."""


class FormNotFoundError(ValueError):
    pass


class SectionNotFoundError(ValueError):
    pass


class LastSectionError(ValueError):
    """The editor tried to delete the only remaining section."""


class InvalidNavigationStateError(ValueError):
    """A posted navigation state does not fit the form it was posted for."""


class SubmissionNotAllowedError(ValueError):
    """The submission gate is not open at the respondent's position."""


class SubmissionValidationError(ValueError):
    """Answers failed validation; ``errors`` maps field id to message."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("Form has validation errors")
        self.errors = errors


class SubmissionUnavailableError(RuntimeError):
    """Persisting the submission failed; the caller may retry."""


class UploadRejectedError(ValueError):
    pass
