class AppException(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        title: str = "Error",
        details: dict | None = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.title = title
        self.details = details or {}
