class WebhookError(Exception):
    pass


class AuthenticationError(WebhookError):
    """The delivery could not be proven to come from the webhook provider."""


class MissingSignature(AuthenticationError):
    pass


class MalformedSignature(AuthenticationError):
    pass


class UnsupportedAlgorithm(AuthenticationError):
    def __init__(self, algorithm):
        super().__init__(f"Signature algorithm not supported: {algorithm}")
        self.algorithm = algorithm


class SignatureMismatch(AuthenticationError):
    pass


class DecodeError(WebhookError):
    pass
