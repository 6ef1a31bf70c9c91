"""LNURL bech32 encoding.

LNURLs routinely exceed the 90 character limit that ``bech32.bech32_decode``
enforces for segwit addresses, so decoding verifies the checksum directly.
"""

from __future__ import annotations

from bech32 import CHARSET, bech32_encode, bech32_verify_checksum, convertbits

LNURL_HRP = "lnurl"


def encode_lnurl(url: str) -> str:
    """Encode a URL as a bech32 ``lnurl1...`` string."""
    data = convertbits(url.encode("utf-8"), 8, 5)
    return bech32_encode(LNURL_HRP, data)


def decode_lnurl(lnurl: str) -> str:
    """Recover the URL encoded in an ``lnurl1...`` string."""
    if lnurl.lower() != lnurl and lnurl.upper() != lnurl:
        raise ValueError("Mixed-case LNURL")
    bech = lnurl.lower()
    if bech.startswith("lightning:"):
        bech = bech[len("lightning:"):]

    pos = bech.rfind("1")
    if pos < 1 or pos + 7 > len(bech):
        raise ValueError("Malformed LNURL")
    hrp = bech[:pos]
    if hrp != LNURL_HRP:
        raise ValueError(f"Unexpected human-readable part: {hrp}")
    if any(ch not in CHARSET for ch in bech[pos + 1:]):
        raise ValueError("Invalid character in LNURL")

    data = [CHARSET.find(ch) for ch in bech[pos + 1:]]
    if not bech32_verify_checksum(hrp, data):
        raise ValueError("Invalid LNURL checksum")

    decoded = convertbits(data[:-6], 5, 8, False)
    if decoded is None:
        raise ValueError("Invalid LNURL padding")
    return bytes(decoded).decode("utf-8")
