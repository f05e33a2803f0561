from typing import Any, Dict, Optional


def error_context(**values: Any) -> Dict[str, Any]:
    """Context dict holding only the values that are set."""
    return {name: value for name, value in values.items() if value is not None and value != ""}


class EntityStoreError(Exception):
    """Root of every exception raised by dynamodb-entities.

    Attributes:
        message: Human-readable error message
        original_error: Lower-level exception this one was raised from, if any
        context: Entity, table, key or field details rendered after the message
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.original_error = original_error
        self.context = dict(context or {})
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{name}={value}" for name, value in self.context.items())
        return f"{self.message} (Context: {details})"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, "
            f"original_error={self.original_error!r}, context={self.context!r})"
        )
