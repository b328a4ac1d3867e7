from modules.core.exceptions import DomainError, NotFoundError


class DataRequestNotFound(NotFoundError):
    code = "data_request_not_found"
    default_detail = "Data rights request not found."


class SubjectNotFound(NotFoundError):
    """No account is registered under the request email."""

    code = "subject_not_found"
    default_detail = "No account found for this email."


class RequestAlreadyProcessed(DomainError):
    code = "request_already_processed"
    default_detail = "This request has already been processed."


class RequestProcessingFailed(DomainError):
    code = "request_processing_failed"
    default_detail = "Failed to process data rights request."
