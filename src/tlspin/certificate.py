import hashlib
import logging
from base64 import b64encode
from datetime import datetime, timezone
from typing import Union

from asn1crypto import pem
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.x509 import extensions, DNSName, SubjectAlternativeName

from . import constants
from .exceptions import (
    MalformedCertificateError,
    MALFORMED_CERTIFICATE_EMPTY,
    MALFORMED_CERTIFICATE_TYPE,
)

__module__ = "tlspin.certificate"

logger = logging.getLogger(__name__)


class Certificate:
    """
    Parsed handle of a single DER encoded X.509 certificate.

    Two views of the same bytes are kept: the `cryptography` certificate for
    inspection, and the `asn1crypto` structure consumed by the chain
    validator. Equality and hashing use the DER bytes only.
    """

    def __init__(
        self,
        der: bytes,
        certificate: x509.Certificate,
        asn1: asn1_x509.Certificate,
        spki: bytes,
    ) -> None:
        self._der = der
        self._certificate = certificate
        self._asn1 = asn1
        self._spki = spki

    def __eq__(self, other) -> bool:
        if not isinstance(other, Certificate):
            return NotImplemented
        return self._der == other.der

    def __hash__(self) -> int:
        return hash(self._der)

    def __repr__(self) -> str:
        return f"<Certificate(subject={self.subject!r}, sha256_fingerprint={self.sha256_fingerprint})>"

    @property
    def der(self) -> bytes:
        return self._der

    @property
    def spki(self) -> bytes:
        return self._spki

    @property
    def certificate(self) -> x509.Certificate:
        return self._certificate

    @property
    def asn1(self) -> asn1_x509.Certificate:
        return self._asn1

    @property
    def subject(self) -> str:
        return self._certificate.subject.rfc4514_string()

    @property
    def issuer(self) -> str:
        return self._certificate.issuer.rfc4514_string()

    @property
    def subject_common_name(self) -> Union[str, None]:
        for fields in self._certificate.subject:
            current = str(fields.oid)
            if "commonName" in current:
                return fields.value
        return None

    @property
    def san(self) -> list[str]:
        san = []
        try:
            san = self._certificate.extensions.get_extension_for_class(
                SubjectAlternativeName
            ).value.get_values_for_type(DNSName)
        except extensions.ExtensionNotFound as ex:
            logger.debug(ex, stack_info=True)
        return san

    @property
    def not_before(self) -> datetime:
        return self._certificate.not_valid_before_utc

    @property
    def not_after(self) -> datetime:
        return self._certificate.not_valid_after_utc

    @property
    def expired(self) -> bool:
        return self.not_after < datetime.now(timezone.utc)

    @property
    def is_self_signed(self) -> bool:
        return self._certificate.issuer == self._certificate.subject

    @property
    def sha256_fingerprint(self) -> str:
        return hashlib.sha256(self._der).hexdigest()

    @property
    def spki_fingerprint(self) -> str:
        return hashlib.sha256(self._spki).hexdigest()

    @property
    def spki_pin(self) -> str:
        digest = hashlib.sha256(self._spki).digest()
        return f"{constants.SPKI_PIN_PREFIX}{b64encode(digest).decode('ascii')}"


def parse(der: bytes) -> Certificate:
    if not isinstance(der, (bytes, bytearray, memoryview)):
        raise MalformedCertificateError(MALFORMED_CERTIFICATE_TYPE.format(kind=type(der)))
    der = bytes(der)
    if not der:
        raise MalformedCertificateError(MALFORMED_CERTIFICATE_EMPTY, der=der)
    try:
        certificate = x509.load_der_x509_certificate(der)
        asn1 = asn1_x509.Certificate.load(der, strict=True)
        # lifted as encoded, not re-serialised from a key object
        spki = asn1["tbs_certificate"]["subject_public_key_info"].dump()
    except ValueError as ex:
        raise MalformedCertificateError(str(ex), der=der) from ex
    return Certificate(der, certificate, asn1, spki)


def public_key_bytes(certificate: Certificate) -> bytes:
    if not isinstance(certificate, Certificate):
        raise TypeError(
            f"provided an invalid type {type(certificate)} for certificate, expected Certificate"
        )
    return certificate.spki


def pem_to_der(data: bytes) -> list[bytes]:
    """
    Unarmour every CERTIFICATE block of a PEM document. Bytes that are not
    PEM armoured are returned untouched as a single DER candidate.
    """
    if not pem.detect(data):
        return [data]
    return [
        der
        for type_name, _, der in pem.unarmor(data, multiple=True)
        if type_name in ["CERTIFICATE", "X509 CERTIFICATE", "TRUSTED CERTIFICATE"]
    ]
