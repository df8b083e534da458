"""docbind - Error taxonomy.

Every error raised by docbind derives from ``DocbindError``. Errors fall in
two groups:

- Construction-time errors (``ExpressionError`` and subclasses): raised while
  a field path, filter, update, pipeline or option set is being built, never
  deferred to execution.
- Execution-time errors (``CodecError``, ``IdentifierFormatError``,
  ``SchemaConflictError``, ``DriverError``): raised while talking to the
  driver or converting documents, propagated unchanged to the caller.
"""

from typing import Any


class DocbindError(Exception):
    """Base exception for all docbind errors."""

    pass


# =============================================================================
# CONSTRUCTION-TIME ERRORS
# =============================================================================


class ExpressionError(DocbindError):
    """Raised when an expression (path, filter, update, pipeline) is invalid.

    Attributes:
        details: Description of what is wrong.
        field: Optional dotted path of the offending field.
        value: Optional offending value.
    """

    def __init__(
        self,
        details: str,
        field: str | None = None,
        value: Any = None,
    ):
        """Initialize ExpressionError.

        Args:
            details: Human-readable description of the failure.
            field: Optional field path associated with the error.
            value: Optional invalid value.
        """
        self.details = details
        self.field = field
        self.value = value

        field_info = f" (field={field!r})" if field else ""
        value_info = f" [value={value!r}]" if value is not None else ""
        super().__init__(f"Invalid expression{field_info}: {details}{value_info}")


class InvalidFieldPathError(ExpressionError, AttributeError):
    """Raised when a field path cannot be resolved against a document type.

    Also an ``AttributeError`` so that ``hasattr()`` on field references
    behaves as expected.
    """


class TypeMismatchError(ExpressionError):
    """Raised when an operand does not match the declared type of its field.

    Attributes:
        expected: Description of the declared type.
        actual: Description of the operand type.
    """

    def __init__(self, field: str, expected: str, actual: str, value: Any = None):
        """Initialize TypeMismatchError.

        Args:
            field: Dotted path of the field.
            expected: Declared type of the field.
            actual: Type of the operand that was supplied.
            value: Optional operand value.
        """
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"expected {expected}, got {actual}",
            field=field,
            value=value,
        )


class DocumentTypeMismatchError(TypeMismatchError):
    """Raised when an expression built for one document type meets another."""

    def __init__(self, expected: type, actual: type, context: str = "expression"):
        """Initialize DocumentTypeMismatchError.

        Args:
            expected: The document type the receiver is bound to.
            actual: The document type the expression was built against.
            context: What kind of expression was rejected.
        """
        self.expected_model = expected
        self.actual_model = actual
        super().__init__(
            field=context,
            expected=f"{context} over {expected.__name__}",
            actual=f"{context} over {actual.__name__}",
        )


class ConflictingUpdateError(ExpressionError):
    """Raised when two update operations target overlapping paths.

    Attributes:
        path: Path of the operation being added.
        other: Path of the existing operation it overlaps with.
    """

    def __init__(self, path: str, other: str):
        """Initialize ConflictingUpdateError.

        Args:
            path: Path of the new operation.
            other: Path of the already present operation.
        """
        self.path = path
        self.other = other
        super().__init__(
            f"update of '{path}' overlaps with update of '{other}'",
            field=path,
        )


class InvalidOptionError(ExpressionError):
    """Raised when find options or pipeline stage arguments are invalid."""


# =============================================================================
# MODEL DEFINITION
# =============================================================================


class ModelDefinitionError(DocbindError):
    """Raised when a document type cannot be described.

    Attributes:
        model: The offending model class.
        details: What is missing or unsupported.
    """

    def __init__(self, model: type, details: str):
        """Initialize ModelDefinitionError.

        Args:
            model: The model class.
            details: Description of the problem.
        """
        self.model = model
        self.details = details
        super().__init__(f"Invalid document type {model.__name__}: {details}")


# =============================================================================
# EXECUTION-TIME ERRORS
# =============================================================================


class CodecError(DocbindError):
    """Base class for document conversion errors.

    Attributes:
        details: Description of the failure.
        path: Dotted path of the offending value, when known.
    """

    def __init__(self, details: str, path: str | None = None):
        """Initialize CodecError.

        Args:
            details: Description of the failure.
            path: Optional dotted path of the offending value.
        """
        self.details = details
        self.path = path
        path_info = f" at '{path}'" if path else ""
        super().__init__(f"{self._verb}{path_info}: {details}")

    _verb = "Conversion failed"


class EncodeError(CodecError):
    """Raised when a typed value cannot be turned into a document value."""

    _verb = "Encoding failed"


class DecodeError(CodecError):
    """Raised when a raw document cannot be turned into a typed value."""

    _verb = "Decoding failed"


class IdentifierFormatError(DocbindError):
    """Raised when an identifier has a shape the adapter does not support.

    Attributes:
        value: The offending identifier value.
        expected: Name of the identifier type that was expected.
    """

    def __init__(self, value: Any, expected: str):
        """Initialize IdentifierFormatError.

        Args:
            value: The identifier that could not be converted.
            expected: The expected identifier type name.
        """
        self.value = value
        self.expected = expected
        super().__init__(
            f"Unsupported identifier {value!r} ({type(value).__name__}); expected {expected}"
        )


class SchemaConflictError(DocbindError):
    """Raised when a collection exists with an incompatible validator.

    Attributes:
        collection: Name of the collection.
        existing: Validator currently attached to the collection.
        expected: Validator derived from the document type.
    """

    def __init__(self, collection: str, existing: Any, expected: Any):
        """Initialize SchemaConflictError.

        Args:
            collection: Collection name.
            existing: Validator found on the server (may be None).
            expected: Validator derived from the document type.
        """
        self.collection = collection
        self.existing = existing
        self.expected = expected
        super().__init__(
            f"Collection '{collection}' already exists with a different validator."
        )


class DriverError(DocbindError):
    """Raised when the underlying driver reports a failure.

    Wraps driver exceptions (``cause``) and write errors reported inside
    command replies (``code``, ``response``) without reinterpreting them.

    Attributes:
        details: Description of the failure.
        cause: Optional original exception from the driver.
        code: Optional server error code.
        response: Optional raw command reply.
    """

    def __init__(
        self,
        details: str,
        cause: BaseException | None = None,
        *,
        code: int | None = None,
        response: dict[str, Any] | None = None,
    ):
        """Initialize DriverError.

        Args:
            details: Description of the failure.
            cause: Optional original exception.
            code: Optional server error code.
            response: Optional raw command reply.
        """
        self.details = details
        self.cause = cause
        self.code = code
        self.response = response

        cause_info = f" (caused by: {type(cause).__name__}: {cause})" if cause else ""
        code_info = f" [code={code}]" if code is not None else ""
        super().__init__(f"Driver error: {details}{code_info}{cause_info}")

        if cause:
            self.__cause__ = cause


__all__ = [
    "DocbindError",
    "ExpressionError",
    "InvalidFieldPathError",
    "TypeMismatchError",
    "DocumentTypeMismatchError",
    "ConflictingUpdateError",
    "InvalidOptionError",
    "ModelDefinitionError",
    "CodecError",
    "EncodeError",
    "DecodeError",
    "IdentifierFormatError",
    "SchemaConflictError",
    "DriverError",
]
