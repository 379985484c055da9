"""
Exceptions for SubCircle core module
Everything derives from SubCircleError so callers have one general catcher
"""


class SubCircleError(Exception):
    # general container for errors
    pass


class ValidationError(SubCircleError):
    # raised when a required input is missing before any crypto runs
    pass


class FormatError(SubCircleError):
    # raised when a stored blob is not valid base64 or is too short for a nonce
    pass


class AuthenticationError(SubCircleError):
    # raised when the AEAD tag does not verify (wrong key or tampered data)
    pass


class NotFoundError(SubCircleError):
    # raised when a subscription, record or user DNE
    pass


class AccessDeniedError(SubCircleError):
    # raised when a partner is not allowed to see a subscription's credentials
    pass


class StorageError(SubCircleError):
    # raised if the database fails in some way
    pass


class InitializationError(SubCircleError):
    # raised when initialization fails (anywhere)
    pass
