"""
Cryptographic utilities for Paystream.

  - SHA-256 / SHA-512-half / RIPEMD-160 / Hash160
  - Base58 and Base58Check with the ledger's ``r``-first alphabet
  - secp256k1 key generation, signing and verification (ecdsa)
  - Payment-channel claim encoding and claim signatures

Claims are signed the way the XRP Ledger signs them: the signing blob is
``"CLM\\0" || channel_id (32 bytes) || amount (uint64, big-endian drops)``,
hashed with SHA-512-half and signed with a canonical DER signature.
"""

from __future__ import annotations

import hashlib

from Crypto.Hash import RIPEMD160
from ecdsa import BadSignatureError, SECP256k1, SigningKey, VerifyingKey
from ecdsa.der import UnexpectedDER
from ecdsa.errors import MalformedPointError
from ecdsa.util import sigdecode_der, sigencode_der_canonize

ALPHABET = "rpshnaf39wBUDNEGHJKLM4PQRST7VWXYZ2bcdeCg65jkm8oFqi1tuvAxyz"
_ALPHABET_INDEX = {c: i for i, c in enumerate(ALPHABET)}

ACCOUNT_ID_VERSION = 0x00

# Prefix of a payment-channel claim signing blob.
CLAIM_PREFIX = b"CLM\x00"


# ── Hashing ──────────────────────────────────────────────────────────

def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha512_half(data: bytes) -> bytes:
    """First 32 bytes of SHA-512 — the ledger's standard digest."""
    return hashlib.sha512(data).digest()[:32]


def ripemd160(data: bytes) -> bytes:
    # hashlib's ripemd160 depends on the OpenSSL build; pycryptodome always has it.
    return RIPEMD160.new(data).digest()


def hash160(data: bytes) -> bytes:
    return ripemd160(sha256(data))


def generate_tx_id(blob: bytes) -> str:
    """Transaction id: upper-case hex SHA-512-half of the blob."""
    return sha512_half(blob).hex().upper()


# ── Base58 ───────────────────────────────────────────────────────────

def base58_encode(data: bytes) -> str:
    n = int.from_bytes(data, "big")
    out = []
    while n > 0:
        n, rem = divmod(n, 58)
        out.append(ALPHABET[rem])
    pad = len(data) - len(data.lstrip(b"\x00"))
    return ALPHABET[0] * pad + "".join(reversed(out))


def base58_decode(text: str) -> bytes:
    n = 0
    for ch in text:
        try:
            n = n * 58 + _ALPHABET_INDEX[ch]
        except KeyError:
            raise ValueError(f"Invalid base58 character: {ch!r}")
    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n else b""
    pad = len(text) - len(text.lstrip(ALPHABET[0]))
    return b"\x00" * pad + body


def base58check_encode(version: int, payload: bytes) -> str:
    raw = bytes([version]) + payload
    return base58_encode(raw + sha256(sha256(raw))[:4])


def base58check_decode(text: str) -> bytes:
    """Decode and verify checksum; returns the payload without version byte."""
    raw = base58_decode(text)
    if len(raw) < 5:
        raise ValueError("Base58Check string too short")
    body, checksum = raw[:-4], raw[-4:]
    if sha256(sha256(body))[:4] != checksum:
        raise ValueError("Base58Check checksum mismatch")
    return body[1:]


# ── Keys and signatures ──────────────────────────────────────────────

def generate_keypair() -> tuple[bytes, bytes]:
    """Return ``(private_key, compressed_public_key)``: 32 and 33 bytes."""
    sk = SigningKey.generate(curve=SECP256k1)
    return sk.to_string(), sk.get_verifying_key().to_string("compressed")


def public_key_from_private(private_key: bytes) -> bytes:
    sk = SigningKey.from_string(private_key, curve=SECP256k1)
    return sk.get_verifying_key().to_string("compressed")


def derive_address(public_key: bytes) -> str:
    """Classic ``r...`` address: Base58Check(0x00 || Hash160(pubkey))."""
    return base58check_encode(ACCOUNT_ID_VERSION, hash160(public_key))


def sign(private_key: bytes, message: bytes) -> bytes:
    """Deterministic (RFC 6979) canonical DER signature over SHA-512-half(message)."""
    sk = SigningKey.from_string(private_key, curve=SECP256k1)
    return sk.sign_digest_deterministic(
        sha512_half(message),
        hashfunc=hashlib.sha256,
        sigencode=sigencode_der_canonize,
    )


def verify(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Verify a DER signature. Malformed keys or signatures verify as False."""
    try:
        vk = VerifyingKey.from_string(public_key, curve=SECP256k1)
        return vk.verify_digest(signature, sha512_half(message), sigdecode=sigdecode_der)
    except (BadSignatureError, MalformedPointError, UnexpectedDER, ValueError):
        return False


# ── Payment-channel claims ───────────────────────────────────────────

def encode_claim(channel_id: str, amount: int) -> bytes:
    """Signing blob for a claim of ``amount`` drops against ``channel_id``."""
    if len(channel_id) != 64:
        raise ValueError("channel_id must be 64 hex characters")
    if amount < 0 or amount >= 1 << 64:
        raise ValueError("claim amount out of range")
    return CLAIM_PREFIX + bytes.fromhex(channel_id) + amount.to_bytes(8, "big")


def sign_claim(private_key: bytes, channel_id: str, amount: int) -> str:
    return sign(private_key, encode_claim(channel_id, amount)).hex().upper()


def verify_claim(public_key_hex: str, channel_id: str, amount: int, signature_hex: str) -> bool:
    try:
        blob = encode_claim(channel_id, amount)
        return verify(bytes.fromhex(public_key_hex), blob, bytes.fromhex(signature_hex))
    except ValueError:
        return False
