from __future__ import annotations


class BridgeError(Exception):
    """Base class for every failure raised inside the Pull-URI bridge."""


class AuthenticationError(BridgeError):
    """The request HMAC is missing, malformed or wrong."""


class ProtocolDecodeError(BridgeError):
    """The inbound PullURIRequest could not be parsed."""


class SerializationError(BridgeError):
    """The outbound PullURIResponse could not be marshalled."""


class CredentialNotFound(BridgeError):
    """The registry returned no record for the lookup filter."""


class RegistryError(BridgeError):
    """The registry could not be reached or answered with garbage."""


class SchemaMismatch(BridgeError):
    """A registry record or its signed credential has an unexpected shape."""


class RenderError(BridgeError):
    """Template, font or QR code problems while composing the PDF."""


class NoContentProduced(BridgeError):
    """A credential was found but none of the requested artifacts could be built."""
