import logging
import ssl
from socket import socket, AF_INET, SOCK_STREAM
from typing import Union

import validators
import idna
from certifi import where
from OpenSSL import SSL

from .exceptions import TransportError, TRANSPORT_ERROR_HANDSHAKE, TRANSPORT_ERROR_NO_CHAIN
from .policy import SecurityPolicy
from .trust import ServerTrust

__module__ = "tlspin.transport"

logger = logging.getLogger(__name__)


class TLSTransport:
    """
    Fetches the certificate chain a server presents during the TLS handshake.

    OpenSSL verification is disabled on purpose so an untrusted chain is still
    collected; trust decisions are made by a SecurityPolicy afterwards.
    """

    _default_connect_method: str = "TLS_METHOD"
    _default_connect_verify_mode: str = "VERIFY_NONE"

    def __init__(self, hostname: str, port: int = 443, timeout: int = 3) -> None:
        if not isinstance(port, int):
            raise TypeError(
                f"provided an invalid type {type(port)} for port, expected int"
            )
        if not 0 < port < 65536:
            raise ValueError(f"provided an invalid port {port}")
        if not isinstance(timeout, (int, float)):
            raise TypeError(
                f"provided an invalid type {type(timeout)} for timeout, expected int"
            )
        if validators.domain(hostname) is not True and validators.ipv4(hostname) is not True:
            raise ValueError(f"provided an invalid domain {hostname}")
        self.hostname = hostname
        self.port = port
        self.timeout = timeout
        self.peer_address: Union[str, None] = None
        self.negotiated_protocol: Union[str, None] = None
        self.server_trust: Union[ServerTrust, None] = None

    def prepare_socket(self) -> socket:
        sock = socket(AF_INET, SOCK_STREAM)
        sock.settimeout(self.timeout)
        return sock

    def prepare_context(self, method: str = None, verify_mode: str = None) -> SSL.Context:
        if method is not None and not isinstance(method, str):
            raise TypeError(f"method {type(method)}, str supported")
        if method is None:
            method = TLSTransport._default_connect_method
        if not hasattr(SSL, method):
            raise AttributeError(
                "Only available SSL methods on your system are supported"
            )
        if verify_mode is not None and not isinstance(verify_mode, str):
            raise TypeError(f"verify_mode {type(verify_mode)}, str supported")
        if verify_mode is None:
            verify_mode = TLSTransport._default_connect_verify_mode
        if not hasattr(SSL, verify_mode):
            raise AttributeError(
                "Only available SSL verify modes on your system are supported"
            )
        ctx = SSL.Context(method=getattr(SSL, method))
        ctx.load_verify_locations(cafile=where())
        ctx.set_verify(getattr(SSL, verify_mode))
        return ctx

    def prepare_connection(self, context: SSL.Context, use_sni: bool = True) -> SSL.Connection:
        conn = SSL.Connection(context=context, socket=self.prepare_socket())
        if all([use_sni, ssl.HAS_SNI]):
            logger.debug(f"{self.hostname}:{self.port} using SNI")
            conn.set_tlsext_host_name(idna.encode(self.hostname))
        return conn

    def connect(self, use_sni: bool = True) -> ServerTrust:
        logger.info(f"{self.hostname}:{self.port} fetching the certificate chain")
        conn = self.prepare_connection(self.prepare_context(), use_sni=use_sni)
        try:
            conn.connect((self.hostname, self.port))
            conn.setblocking(1)
            conn.do_handshake()
            self.peer_address, _ = conn.getpeername()
            self.negotiated_protocol = conn.get_protocol_version_name()
            server_trust = ServerTrust.from_connection(conn)
        except (SSL.Error, OSError) as ex:
            logger.debug(ex, stack_info=True)
            raise TransportError(
                TRANSPORT_ERROR_HANDSHAKE.format(host=self.hostname, port=self.port)
            ) from ex
        finally:
            conn.close()
        if not server_trust:
            raise TransportError(
                TRANSPORT_ERROR_NO_CHAIN.format(host=self.hostname, port=self.port)
            )
        logger.debug(
            f"{self.hostname}:{self.port} Peer cert chain length: {len(server_trust)}"
        )
        self.server_trust = server_trust
        return server_trust

    def evaluate(self, policy: Union[SecurityPolicy, None] = None) -> bool:
        if policy is None:
            policy = SecurityPolicy.default_policy()
        if not isinstance(policy, SecurityPolicy):
            raise TypeError(
                f"provided an invalid type {type(policy)} for policy, expected SecurityPolicy"
            )
        server_trust = self.server_trust or self.connect()
        return policy.evaluate_server_trust(server_trust, domain=self.hostname)
