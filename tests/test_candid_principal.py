import pytest

from icreactor.candid.principal import Principal


def test_well_known_principals():
    assert Principal.management_canister().to_text() == "aaaaa-aa"
    assert Principal.anonymous().to_text() == "2vxsx-fae"
    assert Principal.anonymous().is_anonymous()
    assert Principal.from_hex("00000000000000020101").to_text() == "ryjl3-tyaaa-aaaaa-aaaba-cai"


def test_from_text_round_trip():
    text = "ryjl3-tyaaa-aaaaa-aaaba-cai"
    principal = Principal.from_text(text)
    assert principal.to_text() == text
    assert principal.to_hex() == "00000000000000020101"
    assert Principal.from_text("RYJL3-TYAAA-AAAAA-AAABA-CAI") == principal


def test_from_text_rejects_bad_checksum():
    with pytest.raises(ValueError):
        Principal.from_text("ryjl3-tyaaa-aaaaa-aaaba-caa")


def test_from_value_accepts_text_bytes_and_principals():
    ledger = Principal.from_hex("00000000000000020101")
    assert Principal.from_value("ryjl3-tyaaa-aaaaa-aaaba-cai") == ledger
    assert Principal.from_value(bytes.fromhex("00000000000000020101")) == ledger
    assert Principal.from_value(ledger) is ledger
    with pytest.raises(TypeError):
        Principal.from_value(12)


def test_principal_is_hashable_and_bytes_convertible():
    a = Principal.from_hex("0101")
    b = Principal(b"\x01\x01")
    assert a == b
    assert len({a, b}) == 1
    assert bytes(a) == b"\x01\x01"


def test_too_long_principal_is_rejected():
    with pytest.raises(ValueError):
        Principal(bytes(30))
