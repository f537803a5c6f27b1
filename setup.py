from io import StringIO
from pathlib import Path
from setuptools import setup, find_packages

__version__ = "1.0.0"


def _read_requirements(handle) -> list[str]:
    return [
        line.strip()
        for line in handle.readlines()
        if line.strip() and not line.strip().startswith("#")
    ]


try:
    with open(Path(__file__).with_name("requirements.txt"), encoding="utf8") as f:
        install_requires = _read_requirements(f)
except FileNotFoundError:
    install_requires = _read_requirements(StringIO("""
cryptography>=42.0
asn1crypto>=1.5
pyOpenSSL>=23.2
pyhanko-certvalidator>=0.27
certifi
validators
idna
pyyaml
rich"""))


setup(
    name="tlspin",
    version=__version__,
    author='Christopher Langton',
    author_email='chris@trivialsec.com',
    description="Decide whether a TLS server deserves your trust, with certificate and public key pinning.",
    classifiers=[
        "Operating System :: OS Independent",
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
    ],
    zip_safe=False,
    include_package_data=True,
    package_data={"tlspin": ["config/*.yaml"]},
    install_requires=install_requires,
    extras_require={
        "tests": ["pytest"],
    },
    entry_points={
        'console_scripts': ['tlspin=tlspin.cli.__main__:main'],
    },
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    long_description="""
# tlspin

Decide whether a TLS server deserves your trust.

A server trust policy combines standard certificate chain validation with
optional pinning against certificates or public keys that ship with your
client, defending against manipulator-in-the-middle attacks by a rogue or
compromised Certification Authority.

## Basic Usage

`python3 -m pip install -U tlspin`

```py
from tlspin import PinningMode, SecurityPolicy, certificates_in_bundle, tlsprobe

policy = SecurityPolicy.with_pinned_certificates(
    PinningMode.PUBLIC_KEY,
    certificates_in_bundle("./certificates"),
)
print('Trusted' if tlsprobe("example.com", policy=policy) else 'Rejected')
```

On the command-line:

```sh
tlspin evaluate example.com --mode public_key --bundle ./certificates
tlspin pins ./certificates
```

## Features

- Pinning modes
  - ✓ none (chain validation only)
  - ✓ public key (SubjectPublicKeyInfo, survives certificate renewal)
  - ✓ certificate (pinned certificates also act as trust anchors)
- ✓ Chain validation against the certifi CA bundle or your own trust roots
- ✓ Hostname validation (subjectAltName, common name fallback, wildcards)
- ✓ Tolerate invalid certificates while still enforcing pins
- ✓ Immutable policies, safe to share between threads
- ✓ YAML configuration
    """,
    long_description_content_type="text/markdown",
)
