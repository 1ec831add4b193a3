class UpstreamAPIError(Exception):
    pass


class HostingMisconfiguredCredentials(UpstreamAPIError):
    pass


class HostingClientError(UpstreamAPIError):
    @property
    def code(self):
        return self._code

    @property
    def response_data(self):
        return self._response_data


class HostingClientGeneralError(HostingClientError):
    def __init__(self, status_code, response_data, message):
        super().__init__(status_code, response_data, message)
        self._code = status_code
        self._response_data = response_data
        self.message = message


class HostingRepoNotFoundError(HostingClientError):
    def __init__(self, response_data, message):
        super().__init__(response_data, message)
        self._code = 404
        self._response_data = response_data
        self.message = message


class HostingObjectNotFoundError(HostingClientError):
    def __init__(self, response_data, message):
        super().__init__(response_data, message)
        self._code = 404
        self._response_data = response_data
        self.message = message


class HostingRateLimitError(HostingClientError):
    def __init__(self, response_data, message, reset=None, retry_after=None):
        super().__init__(response_data, message, reset)
        self._code = 403
        self._response_data = response_data
        self.message = message

        # timestamp when the rate limit resets
        self.reset = reset
        # seconds to wait before making another request
        self.retry_after = retry_after


class HostingUnauthorizedError(HostingClientError):
    def __init__(self, response_data, message):
        super().__init__(response_data, message)
        self._code = 401
        self._response_data = response_data
        self.message = message


class HostingServerFailureError(UpstreamAPIError):
    pass


class HostingServerUnreachableError(HostingServerFailureError):
    pass


class HostingServer5xxCodeError(HostingServerFailureError):
    pass
