class ObjectError(ValueError):
    """Base class for everything that can go wrong while reading an object"""


class BadIdentifierError(ObjectError):
    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Invalid object id: {identifier!r}")


class NotFoundError(ObjectError):
    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Object {identifier} not found")


class AmbiguousIdentifierError(ObjectError):
    def __init__(self, identifier: str, candidates: list[str]):
        self.identifier = identifier
        self.candidates = candidates
        super().__init__(
            f"Short object id {identifier} is ambiguous ({len(candidates)} candidates)"
        )


class StorageError(ObjectError):
    # I/O or inflate failure, identifier is None when the raw stream was handed in directly
    def __init__(self, message: str, identifier: str | None = None):
        self.identifier = identifier
        super().__init__(message)


class MalformedHeaderError(ObjectError):
    pass


class UnknownTypeError(ObjectError):
    def __init__(self, type_tag: bytes):
        self.type_tag = type_tag
        super().__init__(f"Unknown object type {type_tag!r}")


class SizeMismatchError(ObjectError):
    def __init__(self, declared: int, actual: int):
        self.declared = declared
        self.actual = actual
        super().__init__(f"Header declares {declared} bytes but body has {actual}")


class MalformedTreeError(ObjectError):
    pass


class UnknownModeError(ObjectError):
    def __init__(self, index: int, mode: bytes):
        self.index = index
        self.mode = mode
        super().__init__(f"Tree entry {index} has unknown mode {mode!r}")


class MalformedCommitError(ObjectError):
    pass


class MalformedTagError(ObjectError):
    pass
