__module__ = "tlspin.exceptions"

CONFIGURATION_ERROR_EMPTY_PINS = "Pinning mode {mode} requires at least one pinned certificate, none were provided"
CONFIGURATION_ERROR_MALFORMED_PIN = "Pinned certificate at index {index} is not a valid DER encoded X.509 certificate: {reason}"
CONFIGURATION_ERROR_PINNING_MODE = "Unknown pinning mode {mode}, expected one of {modes}"
CONFIGURATION_ERROR_BUNDLE = "Certificate bundle {location} is not a directory"
CONFIGURATION_ERROR_PIN_FILE = "Pinned certificate file {path} does not exist"
CONFIGURATION_ERROR_FLAG = "{name} must be a bool, got {kind}"
CONFIGURATION_ERROR_REVOCATION_MODE = "Unknown revocation mode {mode}, expected one of {modes}"
CONFIGURATION_ERROR_CONFIG_FILE = "Configuration file {path} could not be parsed"
MALFORMED_CERTIFICATE_TYPE = "expected DER encoded certificate bytes, got {kind}"
MALFORMED_CERTIFICATE_EMPTY = "no certificate bytes provided"
TRANSPORT_ERROR_HANDSHAKE = "Unable to negotiate a TLS socket connection with server at {host}:{port} to obtain the Certificate chain"
TRANSPORT_ERROR_NO_CHAIN = "Server at {host}:{port} did not present a certificate chain"


class ConfigurationError(ValueError):
    """Raised while constructing a policy from invalid inputs, never during evaluation"""


class MalformedCertificateError(ValueError):
    def __init__(self, message: str = None, der: bytes = None):
        super().__init__(message)
        self.length = len(der) if isinstance(der, (bytes, bytearray)) else None


class TransportError(ConnectionError):
    """Used when Transport class specific issues are encountered that are not trust related"""
