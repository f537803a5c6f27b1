from datetime import datetime, timedelta, timezone
from ipaddress import ip_address
from types import SimpleNamespace

import pytest
from cryptography import x509
from cryptography.x509.oid import NameOID, ExtendedKeyUsageOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from tlspin.trust import ServerTrust
from tlspin.validator import (
    ChainValidationResult,
    ChainValidator,
    SystemChainValidator,
    parse_presented_chain,
)

NOW = datetime.now(timezone.utc).replace(microsecond=0)


def make_key():
    return ec.generate_private_key(ec.SECP256R1())


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "tlspin tests"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


def make_certificate(
    common_name: str,
    key,
    issuer_name: str = None,
    issuer_key=None,
    ca: bool = False,
    path_length: int = None,
    san: list = None,
    not_before: datetime = None,
    not_after: datetime = None,
) -> bytes:
    issuer_name = issuer_name or common_name
    issuer_key = issuer_key or key
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(_name(issuer_name))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or NOW - timedelta(days=1))
        .not_valid_after(not_after or NOW + timedelta(days=90))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=path_length), critical=True)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key()),
            critical=False,
        )
    )
    if ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    else:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        ).add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
        )
    if san:
        names = []
        for value in san:
            try:
                names.append(x509.IPAddress(ip_address(value)))
            except ValueError:
                names.append(x509.DNSName(value))
        builder = builder.add_extension(x509.SubjectAlternativeName(names), critical=False)
    certificate = builder.sign(issuer_key, hashes.SHA256())
    return certificate.public_bytes(serialization.Encoding.DER)


def to_pem(der: bytes) -> bytes:
    return x509.load_der_x509_certificate(der).public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def pki() -> SimpleNamespace:
    """
    A small PKI: root -> intermediate -> leaves for example.com, plus an
    unrelated root, a self-signed certificate for pinned.example.com and an
    expired leaf.
    """
    root_key = make_key()
    intermediate_key = make_key()
    leaf_key = make_key()
    attacker_key = make_key()
    other_root_key = make_key()
    self_signed_key = make_key()

    root = make_certificate("tlspin Test Root CA", root_key, ca=True)
    intermediate = make_certificate(
        "tlspin Test Intermediate CA",
        intermediate_key,
        issuer_name="tlspin Test Root CA",
        issuer_key=root_key,
        ca=True,
        path_length=0,
    )

    def issue_leaf(key, san=None, **kwargs) -> bytes:
        return make_certificate(
            "example.com",
            key,
            issuer_name="tlspin Test Intermediate CA",
            issuer_key=intermediate_key,
            san=san or ["example.com", "www.example.com"],
            **kwargs,
        )

    other_root = make_certificate("tlspin Other Root CA", other_root_key, ca=True)
    return SimpleNamespace(
        root=root,
        intermediate=intermediate,
        leaf=issue_leaf(leaf_key),
        rotated_leaf=issue_leaf(leaf_key, not_before=NOW - timedelta(hours=1)),
        attacker_leaf=issue_leaf(attacker_key),
        expired_leaf=issue_leaf(
            leaf_key,
            not_before=NOW - timedelta(days=60),
            not_after=NOW - timedelta(days=30),
        ),
        expired_attacker_leaf=issue_leaf(
            attacker_key,
            not_before=NOW - timedelta(days=60),
            not_after=NOW - timedelta(days=30),
        ),
        ip_leaf=issue_leaf(leaf_key, san=["127.0.0.1"]),
        other_root=other_root,
        other_leaf=make_certificate(
            "example.com",
            leaf_key,
            issuer_name="tlspin Other Root CA",
            issuer_key=other_root_key,
            san=["example.com"],
        ),
        self_signed=make_certificate(
            "pinned.example.com", self_signed_key, san=["pinned.example.com"]
        ),
    )


@pytest.fixture(scope="session")
def chain(pki) -> ServerTrust:
    return ServerTrust.from_der([pki.leaf, pki.intermediate])


@pytest.fixture
def bundle_dir(tmp_path, pki):
    (tmp_path / "root.cer").write_bytes(pki.root)
    (tmp_path / "intermediate.DER").write_bytes(pki.intermediate)
    (tmp_path / "leaf.crt").write_bytes(to_pem(pki.leaf))
    (tmp_path / "notes.txt").write_text("not a certificate")
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "other.cer").write_bytes(pki.other_root)
    return tmp_path


class FakeChainValidator(ChainValidator):
    """Returns a fixed verdict and records every call."""

    def __init__(self, verdict: bool = True, chain: list = None, error: Exception = None):
        self.verdict = verdict
        self.chain = chain
        self.error = error
        self.calls = []

    def validate(self, server_trust, hostname=None, extra_anchors=None):
        self.calls.append(
            {
                "server_trust": server_trust,
                "hostname": hostname,
                "extra_anchors": extra_anchors,
            }
        )
        if self.error is not None:
            raise self.error
        chain = self.chain
        if chain is None:
            chain = parse_presented_chain(server_trust)
        return ChainValidationResult(self.verdict, list(chain), "fake")


@pytest.fixture
def fake_validator():
    return FakeChainValidator


@pytest.fixture
def system_validator(pki):
    return SystemChainValidator(trust_roots=[pki.root])
