"""Entity layer faults.

Every fault carries a numeric `code` the transport layer can map to a
user-facing response.
"""


class ModelError(Exception):
    code = 0
    default_message = "Invalid data."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidPasteIdError(ModelError):
    code = 60
    default_message = "Invalid paste ID."


class PasteExpiredError(ModelError):
    code = 63
    default_message = "Paste does not exist, has expired or has been deleted."


class PasteNotFoundError(ModelError):
    code = 64
    default_message = "Paste does not exist, has expired or has been deleted."


class InvalidParentError(ModelError):
    code = 65
    default_message = "Invalid parent ID."


class MissingPasteError(InvalidParentError):
    """A comment was requested for a paste that is not stored."""

    code = 62
    default_message = "Paste does not exist, has expired or has been deleted."


class CommentNotFoundError(ModelError):
    code = 66
    default_message = "Comment does not exist."


class ParentDeletedError(InvalidParentError):
    code = 67
    default_message = "Paste does not exist, has expired or has been deleted."


class InvalidDataError(ModelError):
    code = 68


class DuplicateCommentError(ModelError):
    code = 69
    default_message = "You are unlucky. Try again."


class UnsupportedOperationError(ModelError):
    code = 72
    default_message = "To delete a comment, delete its parent paste."


class DuplicatePasteError(ModelError):
    code = 75
    default_message = "You are unlucky. Try again."


class StorageFailureError(ModelError):
    code = 76
    default_message = "Error accessing the paste store. Sorry."
