class ProxyError(Exception):
    """Base class for failures that end a proxy request with a client status."""

    status = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ConfigError(ValueError):
    pass


class ResolutionError(ProxyError):
    status = 400


class DisallowedTargetError(ProxyError):
    status = 403

    def __init__(self, host):
        super().__init__(f"{host} is not a supported upstream host")
        self.host = host


class ForwardError(ProxyError):
    status = 502


class TooManyRedirectsError(ForwardError):
    def __init__(self, hops):
        super().__init__(f"Too many redirects ({hops} followed)")
        self.hops = hops


class UpstreamNetworkError(ForwardError):
    pass


class UpstreamTimeoutError(UpstreamNetworkError):
    pass
