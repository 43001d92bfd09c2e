from typing import Iterable, Optional

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ContactError(Exception):
    """Base for every terminal failure of a contact submission.

    ``public_message`` is what the caller sees. Infrastructure errors keep
    their detail in ``str(exc)`` for the log and expose only the generic text.
    """

    status_code = 500
    public_message = INTERNAL_ERROR_MESSAGE

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.public_message)


class ClientInputError(ContactError):
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.public_message = message or self.public_message


class MalformedInput(ClientInputError):
    public_message = "Invalid request format"


class MissingRequiredField(ClientInputError):
    public_message = "Name, email, and message are required"


class CaptchaMissing(ClientInputError):
    public_message = "Please complete the reCAPTCHA verification."


class CaptchaRejected(ClientInputError):
    public_message = "reCAPTCHA verification failed. Please try again."

    def __init__(self, message: Optional[str] = None, error_codes: Iterable[str] = ()):
        super().__init__(message)
        self.error_codes = frozenset(error_codes)


class CaptchaServiceUnavailable(ContactError):
    pass


class DeliveryFailed(ContactError):
    pass


class InternalError(ContactError):
    pass
