import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Union

from asn1crypto import x509 as asn1_x509
from certifi import where
from pyhanko_certvalidator import CertificateValidator, ValidationContext
from pyhanko_certvalidator.errors import (
    PathValidationError,
    RevokedError,
    InvalidCertificateError,
    PathBuildingError,
    ValidationError,
)

from . import certificate, constants
from .certificate import Certificate, pem_to_der
from .exceptions import (
    ConfigurationError,
    MalformedCertificateError,
    CONFIGURATION_ERROR_REVOCATION_MODE,
)
from .trust import ServerTrust

__module__ = "tlspin.validator"

logger = logging.getLogger(__name__)

VALIDATION_RESULT_VALIDATED = "Validated"
VALIDATION_RESULT_EMPTY_CHAIN = "The server presented no certificates"
VALIDATION_RESULT_MALFORMED_LEAF = "The server certificate could not be parsed: {reason}"
VALIDATION_RESULT_HOSTNAME_MISMATCH = "The server certificate is not valid for {hostname}, it names {names}"


@dataclass
class ChainValidationResult:
    system_verdict: bool
    chain: list = field(default_factory=list)
    reason: Union[str, None] = None


class ChainValidator:
    """
    Interface to whatever decides if a chain is trusted by the platform.

    `validate` returns the verdict together with the certificates that were
    inspected, leaf first. Implementations must not raise for anything the
    server sent, a failure is a False verdict with a reason.
    """

    def validate(
        self,
        server_trust: ServerTrust,
        hostname: Union[str, None] = None,
        extra_anchors: Union[Iterable[Certificate], None] = None,
    ) -> ChainValidationResult:
        raise NotImplementedError


@lru_cache(maxsize=8)
def load_trust_roots(cafile: Union[str, None] = None) -> tuple:
    cafile = cafile or where()
    roots = []
    for der in pem_to_der(Path(cafile).read_bytes()):
        try:
            roots.append(certificate.parse(der))
        except MalformedCertificateError as ex:
            logger.warning(f"skipping trust root in {cafile}: {ex}")
    logger.debug(f"loaded {len(roots)} trust roots from {cafile}")
    return tuple(roots)


def parse_presented_chain(server_trust: ServerTrust) -> list[Certificate]:
    chain = []
    for index, der in enumerate(server_trust.certificates):
        try:
            chain.append(certificate.parse(der))
        except MalformedCertificateError as ex:
            logger.debug(f"presented certificate {index} could not be parsed: {ex}")
            if index == 0:
                return []
    return chain


class SystemChainValidator(ChainValidator):
    def __init__(
        self,
        trust_roots: Union[Iterable, None] = None,
        cafile: Union[str, None] = None,
        allow_fetching: bool = False,
        revocation_mode: str = constants.DEFAULT_REVOCATION_MODE,
        weak_hash_algos: Union[set, None] = None,
        moment: Union[datetime, None] = None,
    ) -> None:
        if revocation_mode not in constants.REVOCATION_MODES:
            raise ConfigurationError(
                CONFIGURATION_ERROR_REVOCATION_MODE.format(
                    mode=revocation_mode, modes=", ".join(constants.REVOCATION_MODES)
                )
            )
        self._trust_roots = (
            None if trust_roots is None else tuple(_to_certificates(trust_roots))
        )
        self._cafile = cafile
        self.allow_fetching = allow_fetching
        self.revocation_mode = revocation_mode
        self.weak_hash_algos = set(
            constants.WEAK_HASH_ALGORITHMS if weak_hash_algos is None else weak_hash_algos
        )
        self.moment = moment

    @property
    def trust_roots(self) -> tuple:
        if self._trust_roots is None:
            return load_trust_roots(self._cafile)
        return self._trust_roots

    def prepare_context(
        self, extra_anchors: Union[Iterable[Certificate], None] = None
    ) -> ValidationContext:
        return ValidationContext(
            trust_roots=[root.asn1 for root in self.trust_roots],
            extra_trust_roots=[anchor.asn1 for anchor in extra_anchors or []],
            allow_fetching=self.allow_fetching,
            revocation_mode=self.revocation_mode,
            weak_hash_algos=self.weak_hash_algos,
            moment=self.moment,
        )

    def validate(
        self,
        server_trust: ServerTrust,
        hostname: Union[str, None] = None,
        extra_anchors: Union[Iterable[Certificate], None] = None,
    ) -> ChainValidationResult:
        if not server_trust.certificates:
            return ChainValidationResult(False, [], VALIDATION_RESULT_EMPTY_CHAIN)
        presented = parse_presented_chain(server_trust)
        if not presented:
            return ChainValidationResult(
                False,
                [],
                VALIDATION_RESULT_MALFORMED_LEAF.format(reason="invalid DER"),
            )

        leaf, *intermediates = presented
        validator = CertificateValidator(
            leaf.asn1,
            intermediate_certs=[cert.asn1 for cert in intermediates],
            validation_context=self.prepare_context(extra_anchors),
        )
        try:
            if hostname:
                logger.debug(f"certificate chain validation for {hostname}")
                path = _run(
                    validator.async_validate_usage(
                        set(), extended_key_usage={"server_auth"}, extended_optional=True
                    )
                )
            else:
                logger.debug("certificate chain validation without hostname")
                path = _run(validator.async_validate_usage(set()))
        except RevokedError as ex:
            logger.debug(ex, stack_info=True)
            return ChainValidationResult(False, presented, str(ex))
        except InvalidCertificateError as ex:
            logger.debug(ex, stack_info=True)
            return ChainValidationResult(False, presented, str(ex))
        except PathValidationError as ex:
            logger.debug(ex, stack_info=True)
            return ChainValidationResult(False, presented, str(ex))
        except PathBuildingError as ex:
            logger.debug(ex, stack_info=True)
            return ChainValidationResult(False, presented, str(ex))
        except (ValidationError, ValueError) as ex:
            logger.warning(ex, exc_info=True)
            return ChainValidationResult(False, presented, str(ex))

        if hostname and not leaf.asn1.is_valid_domain_ip(hostname):
            reason = VALIDATION_RESULT_HOSTNAME_MISMATCH.format(
                hostname=hostname, names=", ".join(leaf.asn1.valid_domains + leaf.asn1.valid_ips)
            )
            logger.debug(reason)
            return ChainValidationResult(False, presented, reason)

        return ChainValidationResult(
            True, _path_to_chain(path, presented), VALIDATION_RESULT_VALIDATED
        )


def _run(coroutine):
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coroutine)
    # asyncio.run refuses to start inside a running event loop
    with ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coroutine).result()


def _to_certificates(values: Iterable) -> list[Certificate]:
    certificates = []
    for value in values:
        if isinstance(value, Certificate):
            certificates.append(value)
            continue
        if isinstance(value, asn1_x509.Certificate):
            value = value.dump()
        if isinstance(value, str):
            value = value.encode("ascii")
        for der in pem_to_der(value):
            try:
                certificates.append(certificate.parse(der))
            except MalformedCertificateError as ex:
                raise ConfigurationError(f"invalid trust root: {ex}") from ex
    return certificates


def _presented_match(cert: Certificate, presented: list[Certificate]):
    for candidate in presented:
        if candidate.spki == cert.spki and candidate.asn1.subject == cert.asn1.subject:
            return candidate
    return None


def _path_to_chain(path, presented: list[Certificate]) -> list[Certificate]:
    """
    The validated path, leaf first, made of what the server sent where it
    can be. Anchors match by subject and key, so a trust anchor standing in
    for a presented certificate is replaced by the presented one and the
    presented leaf is always at index 0.
    """
    known = {cert.der: cert for cert in presented}
    chain = [presented[0]]
    # the validation path runs from the trust anchor down to the leaf
    for cert in list(reversed(list(path.iter_certs(include_root=True))))[1:]:
        der = cert.dump()
        if der in known:
            chain.append(known[der])
            continue
        try:
            parsed = certificate.parse(der)
        except MalformedCertificateError as ex:
            logger.debug(f"validation path certificate could not be parsed: {ex}")
            continue
        chain.append(_presented_match(parsed, presented) or parsed)
    unique = []
    for cert in chain:
        if cert not in unique:
            unique.append(cert)
    return unique
