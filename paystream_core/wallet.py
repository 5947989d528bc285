"""
Wallet management for Paystream.

A wallet is a party identity: an address, the public key that verifies its
claims, and the secret the gateway signs with.

Two kinds exist side by side:
  - locally generated secp256k1 wallets (``Wallet.create`` /
    ``Wallet.from_seed``) whose secret is the hex private key and which can
    sign claims in-process;
  - faucet wallets handed out by a remote network, whose secret is an
    opaque ledger seed only the gateway knows how to use.

Either kind can be exported encrypted with a passphrase (AES-256-GCM,
PBKDF2-HMAC-SHA256) for the session store.
"""

from __future__ import annotations

import hashlib
import os

from paystream_core.crypto_utils import (
    derive_address,
    generate_keypair,
    public_key_from_private,
    sign_claim,
)

_KDF_ITERATIONS = 600_000


class Wallet:
    """A test-network party: address, public key and signing secret."""

    def __init__(
        self,
        address: str,
        public_key: str,
        secret: str,
        private_key: bytes | None = None,
    ):
        self.address = address
        self.public_key = public_key.upper()
        self.secret = secret
        self.private_key = private_key

    # ---- factory methods ----

    @classmethod
    def create(cls) -> Wallet:
        """Generate a brand-new local secp256k1 wallet."""
        priv, _ = generate_keypair()
        return cls.from_private_key(priv)

    @classmethod
    def from_private_key(cls, private_key: bytes) -> Wallet:
        pub = public_key_from_private(private_key)
        return cls(
            address=derive_address(pub),
            public_key=pub.hex(),
            secret=private_key.hex(),
            private_key=private_key,
        )

    @classmethod
    def from_seed(cls, seed: str) -> Wallet:
        """
        Derive a local wallet deterministically from a seed phrase.

        PBKDF2-HMAC-SHA256 with a fixed salt, so the same phrase always
        gives the same address (handy for fixtures and repeatable demos).
        """
        priv = hashlib.pbkdf2_hmac(
            "sha256", seed.encode("utf-8"), b"Paystream/seed/v1", _KDF_ITERATIONS,
        )
        return cls.from_private_key(priv)

    @classmethod
    def from_secret(cls, address: str, public_key: str, secret: str) -> Wallet:
        """Wrap a wallet whose secret is held in ledger-native form."""
        private_key = None
        try:
            raw = bytes.fromhex(secret)
        except ValueError:
            raw = b""
        if len(raw) == 32 and public_key_from_private(raw).hex().upper() == public_key.upper():
            private_key = raw
        return cls(address, public_key, secret, private_key=private_key)

    # ---- signing ----

    @property
    def can_sign_locally(self) -> bool:
        return self.private_key is not None

    def sign_claim(self, channel_id: str, amount: int) -> str:
        """Sign a cumulative claim of ``amount`` drops; hex DER signature."""
        if self.private_key is None:
            raise ValueError(f"Wallet {self.address} holds no local signing key")
        return sign_claim(self.private_key, channel_id, amount)

    # ---- serialisation ----

    def to_dict(self) -> dict:
        """Public view; never includes the secret."""
        return {
            "address": self.address,
            "public_key": self.public_key,
        }

    def export_encrypted(self, passphrase: str) -> dict:
        """
        Export wallet as an encrypted JSON-compatible dict.

        AES-256-GCM authenticated encryption of the secret, key from
        PBKDF2-HMAC-SHA256 with 600 000 iterations and a random salt.
        """
        salt = os.urandom(16)
        key = hashlib.pbkdf2_hmac("sha256", passphrase.encode("utf-8"), salt, _KDF_ITERATIONS)
        enc_secret, nonce, tag = self._aes_gcm_encrypt(key, self.secret.encode("utf-8"))
        return {
            "version": 1,
            "address": self.address,
            "public_key": self.public_key,
            "encrypted_secret": enc_secret.hex(),
            "nonce": nonce.hex(),
            "tag": tag.hex(),
            "salt": salt.hex(),
            "kdf": "pbkdf2-hmac-sha256",
            "kdf_iterations": _KDF_ITERATIONS,
        }

    @classmethod
    def import_encrypted(cls, data: dict, passphrase: str) -> Wallet:
        """Import from :meth:`export_encrypted`. Raises ValueError on a wrong passphrase."""
        salt = bytes.fromhex(data["salt"])
        iterations = data.get("kdf_iterations", _KDF_ITERATIONS)
        key = hashlib.pbkdf2_hmac("sha256", passphrase.encode("utf-8"), salt, iterations)
        secret = cls._aes_gcm_decrypt(
            key,
            bytes.fromhex(data["nonce"]),
            bytes.fromhex(data["encrypted_secret"]),
            bytes.fromhex(data["tag"]),
        ).decode("utf-8")
        return cls.from_secret(data["address"], data["public_key"], secret)

    # ---- AES-256-GCM authenticated encryption ----

    @staticmethod
    def _aes_gcm_encrypt(key: bytes, data: bytes) -> tuple[bytes, bytes, bytes]:
        """Encrypt *data* with AES-256-GCM. Returns (ciphertext, nonce, tag)."""
        from Crypto.Cipher import AES
        nonce = os.urandom(12)  # 96-bit nonce, unique per encryption
        cipher = AES.new(key, AES.MODE_GCM, nonce=nonce)
        ciphertext, tag = cipher.encrypt_and_digest(data)
        return ciphertext, nonce, tag

    @staticmethod
    def _aes_gcm_decrypt(key: bytes, nonce: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        """Decrypt and verify AES-256-GCM ciphertext. Raises ValueError on tamper."""
        from Crypto.Cipher import AES
        cipher = AES.new(key, AES.MODE_GCM, nonce=nonce)
        return cipher.decrypt_and_verify(ciphertext, tag)

    def __repr__(self) -> str:
        return f"Wallet({self.address})"
