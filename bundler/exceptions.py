"""Custom exception classes for the bundling service."""


class BundlerException(Exception):
    """
    Base exception class for all SealBox errors.
    """
    pass


class UserAlreadyExistsError(BundlerException):
    """
    Raised when attempting to register a username that already exists.
    """
    pass


class InvalidCredentialsError(BundlerException):
    """
    Raised when login credentials are invalid.
    """
    pass


class InvalidAPIKeyError(BundlerException):
    """
    Raised when an API Key is missing, unknown or expired.
    """
    pass


class ValidationError(BundlerException):
    """
    Raised when a request is well-formed JSON but semantically invalid.
    """
    pass


class InvalidGroupError(BundlerException):
    """
    Raised when a file group does not exist, is not owned by the requester,
    or has already been bundled (or is being bundled by another request).
    """
    pass


class EmptyGroupError(BundlerException):
    """
    Raised when a file group has no member files to bundle.
    """
    pass


class ArchiveIOError(BundlerException):
    """
    Raised when the destination archive cannot be created or written.
    """
    pass


class EncryptionError(BundlerException):
    """
    Raised when wrapping an artifact for its recipients fails.
    """
    pass


class PersistenceConflictError(BundlerException):
    """
    Raised when the final conditional update of a bundled group affects no rows.
    """
    pass


class LinkAlreadyExistsError(BundlerException):
    """
    Raised when a group already owns an access credential.
    """
    pass


class ObjectStoreError(BundlerException):
    """
    Raised when the remote object store rejects or fails an upload.
    """
    pass


class EnvelopeFormatError(BundlerException):
    """
    Raised when an envelope header or payload is malformed or fails authentication.
    """
    pass


class IncorrectIdentityError(BundlerException):
    """
    Raised by an identity that does not match any stanza of an envelope.
    The decryptor moves on to the next identity.
    """
    pass


class NoIdentityMatchedError(BundlerException):
    """
    Raised when none of the supplied identities can unwrap an envelope.
    """

    def __init__(self, message: str = "no identity matched any recipient"):
        super().__init__(message)


class IncorrectPassphraseError(BundlerException):
    """
    Raised when a passphrase identity is the only candidate and its passphrase is wrong.
    """

    def __init__(self, message: str = "incorrect passphrase"):
        super().__init__(message)


class PassphraseUnavailableError(BundlerException):
    """
    Raised when a passphrase is needed but could not be read from the user.
    """
    pass


class PublicKeyNotFoundError(BundlerException):
    """
    Raised when a user has no registered public key.
    """
    pass
