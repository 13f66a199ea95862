class BuildError(Exception):
    pass


class ValidationError(BuildError):
    pass


class InvalidDateFormatError(ValidationError):
    def __init__(self, literal: str) -> None:
        self.literal = literal
        super().__init__(f"invalid date format in specification: {literal!r}")


class MissingFieldError(ValidationError):
    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"missing value for attribute {field_name}")


class InvalidFieldError(ValidationError):
    def __init__(self, field_name: str, value: object, reason: str) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(f"invalid value for attribute {field_name}: {value!r} ({reason})")


class SpecLoadError(BuildError):
    pass


class SourceNotFoundError(BuildError):
    def __init__(self, path: object, message: str | None = None) -> None:
        self.path = path
        super().__init__(message or f"File not found: {path}")


class ArchiveExistsError(BuildError):
    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(f"Archive already exists: {path} (use --force to overwrite)")


class ArchiveWriteError(BuildError):
    pass


class SigningError(BuildError):
    pass


class KeyUnreadableError(SigningError):
    pass


class EmptyCertChainError(SigningError):
    pass


class VerificationError(Exception):
    pass


class ArchiveUnreadableError(VerificationError):
    pass


class InvalidFooterError(ArchiveUnreadableError):
    pass


class SignatureMissingError(VerificationError):
    pass


class MalformedCertificateError(VerificationError, SigningError):
    pass
