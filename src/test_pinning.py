import pytest

from tlspin.certificate import parse
from tlspin.exceptions import ConfigurationError
from tlspin.pinning import PinningMode, PinnedSet, build_pinned_set


@pytest.mark.parametrize(
    "value,expected",
    [
        ("none", PinningMode.NONE),
        ("NONE", PinningMode.NONE),
        ("public_key", PinningMode.PUBLIC_KEY),
        ("public-key", PinningMode.PUBLIC_KEY),
        ("Certificate", PinningMode.CERTIFICATE),
        (PinningMode.CERTIFICATE, PinningMode.CERTIFICATE),
    ],
)
def test_pinning_mode_from_value(value, expected):
    assert PinningMode.from_value(value) is expected


@pytest.mark.parametrize("value", ["pinned", "", None, 1])
def test_pinning_mode_unknown(value):
    with pytest.raises(ConfigurationError):
        PinningMode.from_value(value)


def test_pinning_mode_members():
    assert [mode.value for mode in PinningMode] == ["none", "public_key", "certificate"]


def test_certificate_mode_compares_der(pki):
    pinned = build_pinned_set([pki.leaf, pki.root], PinningMode.CERTIFICATE)
    assert isinstance(pinned, PinnedSet)
    assert pinned.comparison == frozenset([pki.leaf, pki.root])
    assert pki.leaf in pinned
    assert len(pinned.anchors) == 2


def test_public_key_mode_compares_spki(pki):
    pinned = build_pinned_set([pki.leaf], PinningMode.PUBLIC_KEY)
    assert pinned.comparison == frozenset([parse(pki.leaf).spki])
    assert parse(pki.rotated_leaf).spki in pinned
    assert parse(pki.attacker_leaf).spki not in pinned


def test_none_mode_has_no_comparison(pki):
    pinned = build_pinned_set([pki.leaf], PinningMode.NONE)
    assert pinned.comparison == frozenset()
    assert pinned.certificates == frozenset([pki.leaf])
    assert build_pinned_set([], PinningMode.NONE).comparison == frozenset()


def test_duplicates_collapse(pki):
    pinned = build_pinned_set(
        [pki.leaf, bytearray(pki.leaf), parse(pki.leaf)], PinningMode.CERTIFICATE
    )
    assert len(pinned) == 1
    assert len(pinned.anchors) == 1


def test_shared_key_collapses_in_public_key_mode(pki):
    pinned = build_pinned_set([pki.leaf, pki.rotated_leaf], PinningMode.PUBLIC_KEY)
    assert len(pinned.certificates) == 2
    assert len(pinned.comparison) == 1


@pytest.mark.parametrize("mode", [PinningMode.PUBLIC_KEY, PinningMode.CERTIFICATE])
def test_empty_pins_rejected(mode):
    with pytest.raises(ConfigurationError):
        build_pinned_set([], mode)
    with pytest.raises(ConfigurationError):
        build_pinned_set(None, mode)


def test_malformed_pin_names_index(pki):
    with pytest.raises(ConfigurationError) as excinfo:
        build_pinned_set([pki.leaf, b"garbage"], PinningMode.CERTIFICATE)
    assert "index 1" in str(excinfo.value)


def test_malformed_pin_rejected_without_pinning():
    with pytest.raises(ConfigurationError):
        build_pinned_set([b"garbage"], PinningMode.NONE)
