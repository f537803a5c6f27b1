import sys
import logging
from typing import Union

__version__ = "1.0.0"

from .bundle import certificates_in_bundle
from .certificate import Certificate, parse, public_key_bytes
from .exceptions import ConfigurationError, MalformedCertificateError, TransportError
from .pinning import PinningMode, PinnedSet, build_pinned_set
from .policy import SecurityPolicy, SecurityPolicyBuilder
from .transport import TLSTransport
from .trust import ServerTrust
from .validator import ChainValidationResult, ChainValidator, SystemChainValidator

__module__ = "tlspin"

assert sys.version_info >= (3, 9), "Requires Python 3.9 or newer"
logger = logging.getLogger(__name__)


def tlsprobe(
    hostname: str,
    port: int = 443,
    policy: Union[SecurityPolicy, None] = None,
    use_sni: bool = True,
) -> bool:
    """
    Connect to the server, collect the certificate chain it presents and
    evaluate it with the policy (the default policy when none is given).

    Raises TransportError when no chain could be obtained, the trust
    decision itself is always a bool.
    """
    transport = TLSTransport(hostname, port)
    transport.connect(use_sni=use_sni)
    return transport.evaluate(policy)
