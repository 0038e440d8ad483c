import base64

import pytest

from digilocker_bridge.errors import AuthenticationError
from digilocker_bridge.signature import authenticate, sign, verify

KEY = b"shared-key"
BODY = b'<PullURIRequest ts="2021-02-01" txn="t-1" orgId="org" format="pdf"><DocDetails/></PullURIRequest>'


def test_valid_mac_is_accepted():
    assert verify(BODY, sign(BODY, KEY), KEY)


def test_mac_accepted_as_bytes():
    assert verify(BODY, sign(BODY, KEY).encode("ascii"), KEY)


@pytest.mark.parametrize("bit", [0, 7, 100, 255])
def test_single_flipped_bit_is_rejected(bit):
    digest = bytearray(base64.b64decode(sign(BODY, KEY)))
    digest[bit // 8] ^= 1 << (bit % 8)
    assert not verify(BODY, base64.b64encode(bytes(digest)), KEY)


def test_modified_body_is_rejected():
    mac = sign(BODY, KEY)
    assert not verify(BODY + b" ", mac, KEY)


def test_wrong_key_is_rejected():
    assert not verify(BODY, sign(BODY, b"another-key"), KEY)


@pytest.mark.parametrize("mac", [None, "", "not base64!!", "abc", "Zm9vé"])
def test_undecodable_or_missing_mac_fails_closed(mac):
    assert verify(BODY, mac, KEY) is False


def test_authenticate_accepts_a_valid_mac():
    authenticate(BODY, sign(BODY, KEY), KEY.decode("ascii"))


@pytest.mark.parametrize(
    "mac, shared_key",
    [
        (None, "shared-key"),
        ("not base64!!", "shared-key"),
        (sign(BODY, b"another-key"), "shared-key"),
        (sign(BODY, b""), ""),
    ],
)
def test_authenticate_raises_on_rejection(mac, shared_key):
    with pytest.raises(AuthenticationError):
        authenticate(BODY, mac, shared_key)
