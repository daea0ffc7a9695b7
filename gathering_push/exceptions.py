"""Domain exceptions mapped to HTTP responses by the handlers in main.py."""


class AppException(Exception):
    status_code = 500

    def __init__(self, detail: str = "Internal error"):
        super().__init__(detail)
        self.detail = detail


class NotFoundException(AppException):
    status_code = 404

