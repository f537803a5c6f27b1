import logging
from dataclasses import dataclass, field
from typing import Iterable, Union

from OpenSSL import SSL
from OpenSSL.crypto import X509, FILETYPE_ASN1, dump_certificate

from .certificate import Certificate, pem_to_der

__module__ = "tlspin.trust"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerTrust:
    """
    The certificate chain a server presented during the handshake, leaf
    first, as DER bytes. Nothing is parsed here; hostile bytes are only
    interpreted during evaluation where they can do no more than cause a
    rejection.
    """

    certificates: tuple = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(
            self,
            "certificates",
            tuple(
                bytes(der) if isinstance(der, (bytearray, memoryview)) else der
                for der in self.certificates
            ),
        )

    def __len__(self) -> int:
        return len(self.certificates)

    def __bool__(self) -> bool:
        return bool(self.certificates)

    @property
    def leaf(self) -> Union[bytes, None]:
        if not self.certificates:
            return None
        return self.certificates[0]

    @property
    def intermediates(self) -> tuple:
        return self.certificates[1:]

    @classmethod
    def from_der(cls, certificates: Iterable[bytes]) -> "ServerTrust":
        return cls(
            certificates=tuple(
                cert.der if isinstance(cert, Certificate) else cert
                for cert in certificates or []
            )
        )

    @classmethod
    def from_pem(cls, data: bytes) -> "ServerTrust":
        if isinstance(data, str):
            data = data.encode("ascii")
        return cls(certificates=tuple(pem_to_der(data)))

    @classmethod
    def from_x509(cls, certificates: Iterable[X509]) -> "ServerTrust":
        chain = []
        for cert in certificates or []:
            if not isinstance(cert, X509):
                raise TypeError(
                    f"ServerTrust.from_x509 expected OpenSSL.crypto.X509, got {type(cert)}"
                )
            chain.append(dump_certificate(FILETYPE_ASN1, cert))
        return cls(certificates=tuple(chain))

    @classmethod
    def from_connection(cls, conn: SSL.Connection) -> "ServerTrust":
        peer_chain = conn.get_peer_cert_chain() or []
        logger.debug(f"Peer cert chain length: {len(peer_chain)}")
        if not peer_chain:
            leaf = conn.get_peer_certificate()
            peer_chain = [leaf] if leaf is not None else []
        return cls.from_x509(peer_chain)
