import pytest
import yaml
from OpenSSL.crypto import FILETYPE_ASN1, load_certificate
from rich.console import Console

from tlspin import cli, config
from tlspin.cli.__main__ import _evaluate_config, _split_target, main
from tlspin.cli.pins import pins
from tlspin.transport import TLSTransport
from conftest import to_pem


class StubConnection:
    def __init__(self, chain):
        self.chain = chain

    def connect(self, address):
        pass

    def setblocking(self, flag):
        pass

    def do_handshake(self):
        pass

    def getpeername(self):
        return ("127.0.0.1", 443)

    def get_protocol_version_name(self):
        return "TLSv1.3"

    def get_peer_cert_chain(self):
        return self.chain

    def close(self):
        pass


@pytest.fixture
def workdir(tmp_path, monkeypatch, pki):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "CONFIG_PATH", str(tmp_path / "home"))
    (tmp_path / "ca.pem").write_bytes(to_pem(pki.root))
    chain = [load_certificate(FILETYPE_ASN1, der) for der in [pki.leaf, pki.intermediate]]
    monkeypatch.setattr(
        TLSTransport,
        "prepare_connection",
        lambda self, context, use_sni=True: StubConnection(chain),
    )
    return tmp_path


def test_outputln_without_console():
    assert cli.outputln("message", con=None) is None


def test_outputln_levels(capsys):
    con = Console(width=120)
    cli.passln("chain", con=con, hostname="example.com", port=443)
    cli.failln("chain", con=con)
    cli.outputln("ignored", con=con, result_level="unknown")
    out = capsys.readouterr().out
    assert "TRUSTED chain" in out
    assert "example.com:443" in out
    assert "REJECTED chain" in out
    assert "ignored" not in out


def test_outputln_label_and_aside(capsys):
    con = Console(width=120)
    cli.infoln("subject", con=con, result_text="CHAIN", result_label="sha256/pin")
    cli.warnln("config.yaml", con=con, aside="core", bold_result=True)
    out = capsys.readouterr().out
    assert "CHAIN subject" in out
    assert "sha256/pin" in out
    assert "WARNING config.yaml" in out
    assert "core" in out


def test_split_target():
    assert _split_target("example.com", None) == ("example.com", 443)
    assert _split_target("example.com:8443", None) == ("example.com", 8443)
    assert _split_target("example.com:8443", 9443) == ("example.com", 9443)


def test_evaluate_config_overrides(workdir):
    conf = _evaluate_config(
        {
            "pinning_mode": "public_key",
            "pins": ["leaf.cer"],
            "allow_invalid": True,
            "no_validate_domain": True,
            "cafile": "ca.pem",
        },
        None,
    )
    assert conf["policy"]["pinning_mode"] == "public_key"
    assert conf["policy"]["pinned_certificates"] == [str(workdir / "leaf.cer")]
    assert conf["policy"]["allow_invalid_certificates"] is True
    assert conf["policy"]["validates_domain_name"] is False
    assert conf["validator"]["cafile"] == str(workdir / "ca.pem")


def test_version(capsys):
    assert main(["--version"]) == 0
    assert "tlspin==" in capsys.readouterr().out


def test_no_subcommand():
    assert main([]) == 0


def test_evaluate_trusted(workdir, capsys):
    assert main(["evaluate", "example.com", "--cafile", "ca.pem"]) == 0
    assert "TRUSTED" in capsys.readouterr().out


def test_evaluate_rejected(workdir):
    assert main(["evaluate", "example.org", "--cafile", "ca.pem", "-q"]) == 1


def test_evaluate_untrusted_root(workdir):
    assert main(["evaluate", "example.com", "-q"]) == 1


def test_evaluate_public_key_pin(workdir, pki):
    (workdir / "pin.cer").write_bytes(pki.rotated_leaf)
    args = ["evaluate", "example.com", "-q", "--mode", "public_key", "--pin", "pin.cer"]
    assert main(args) == 1
    assert main(args + ["--cafile", "ca.pem"]) == 0
    assert main(args + ["--allow-invalid"]) == 0


def test_evaluate_config_file(workdir, pki):
    (workdir / "pins").mkdir()
    (workdir / "pins" / "attacker.cer").write_bytes(pki.attacker_leaf)
    (workdir / ".tlspin-config.yaml").write_text(
        yaml.safe_dump(
            {
                "policy": {
                    "pinning_mode": "certificate",
                    "pinned_certificates": ["pins/attacker.cer"],
                },
                "validator": {"cafile": "ca.pem"},
            }
        ),
        encoding="utf8",
    )
    assert main(["evaluate", "example.com", "-q"]) == 1
    assert main(["evaluate", "example.com", "-q", "--bundle", "pins", "--pin", "ca.pem"]) == 0


def test_evaluate_configuration_error(workdir):
    assert main(["evaluate", "example.com", "-q", "--mode", "certificate"]) == 2


def test_evaluate_invalid_hostname(workdir):
    assert main(["evaluate", "not a host", "-q", "--cafile", "ca.pem"]) == 2


def test_pins(pki, bundle_dir, capsys):
    results = pins([str(bundle_dir)], con=Console(width=200))
    assert len(results) == 3
    assert all(pin.startswith("sha256/") for pin in results)
    assert "sha256/" in capsys.readouterr().out


def test_pins_main(bundle_dir, tmp_path):
    assert main(["pins", str(bundle_dir / "root.cer"), "-q"]) == 0
    assert main(["pins", str(tmp_path / "missing.cer"), "-q"]) == 1


def test_pins_malformed(bundle_dir):
    (bundle_dir / "broken.der").write_bytes(b"garbage")
    assert len(pins([str(bundle_dir)])) == 3
