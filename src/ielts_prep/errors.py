"""Error taxonomy shared by the operations and the api boundary."""


class PrepError(Exception):
    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(PrepError):
    status = 404


class ValidationError(PrepError):
    status = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ConflictError(PrepError):
    status = 409
