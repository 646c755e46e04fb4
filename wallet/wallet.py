import os, json, asyncio, logging, base64
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from eth_account import Account

from errors.exceptions import SigningError

logger = logging.getLogger(__name__)

WALLET_FILENAME   = "burner.json"
_PBKDF2_ROUNDS    = 100_000
_AES_KEYLEN       = 32
_SALT_LEN         = 16
_IV_LEN           = 12


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value

def _pbkdf2_key(password: str, salt: bytes) -> bytes:
    return PBKDF2HMAC(
        algorithm=hashes.SHA256(), length=_AES_KEYLEN,
        salt=salt, iterations=_PBKDF2_ROUNDS
    ).derive(password.encode())

def _encrypt_privkey(priv_hex: str, password: str):
    salt, iv = os.urandom(_SALT_LEN), os.urandom(_IV_LEN)
    ct_tag = AESGCM(_pbkdf2_key(password, salt)).encrypt(iv, priv_hex.encode(), None)
    return (
        base64.b64encode(ct_tag).decode(),
        base64.b64encode(salt).decode(),
        base64.b64encode(iv).decode(),
    )

def _decrypt_privkey(enc_b64, password, salt_b64, iv_b64) -> str:
    ct_tag, salt, iv = map(base64.b64decode, (enc_b64, salt_b64, iv_b64))
    return AESGCM(_pbkdf2_key(password, salt)).decrypt(iv, ct_tag, None).decode()


def load_wallet_file(fname=WALLET_FILENAME) -> Optional[dict]:
    if not os.path.exists(fname):
        return None
    with open(fname) as fh:
        return json.load(fh)

def save_wallet_file(wallet: dict, fname=WALLET_FILENAME):
    with open(fname, "w") as fh:
        json.dump(wallet, fh, indent=2)


def generate_wallet(password: str) -> dict:
    """Create a fresh burner account and encrypt its private key."""
    account = Account.create()
    enc_priv, salt, iv = _encrypt_privkey(account.key.hex(), password)
    return {
        "address":              account.address,
        "encryptedPrivateKey":  enc_priv,
        "PrivateKeySalt":       salt,
        "PrivateKeyIV":         iv,
    }

def unlock_wallet(wallet: dict, password: str) -> dict:
    """Decrypt private key and return plaintext key + address.

    A wrong password surfaces as ``cryptography.exceptions.InvalidTag``.
    """
    priv_hex = _decrypt_privkey(
        wallet["encryptedPrivateKey"], password,
        wallet["PrivateKeySalt"], wallet["PrivateKeyIV"])
    return {
        "privateKey": _strip_0x(priv_hex),
        "address":    wallet["address"],
    }

def get_or_create_wallet(fname=WALLET_FILENAME, password: str = None) -> dict:
    if not password:
        raise ValueError("A password is required to unlock or create the burner wallet")

    wallet = load_wallet_file(fname)
    if wallet:
        return unlock_wallet(wallet, password)

    wallet_json = generate_wallet(password)
    save_wallet_file(wallet_json, fname)
    logger.info(f"Burner wallet generated -> {fname} ({wallet_json['address']})")
    return unlock_wallet(wallet_json, password)


@dataclass(frozen=True)
class SignedTx:
    raw: bytes
    tx_hash: str


class BurnerSigner:
    """
    Holds the burner account key and signs transactions with it.

    Signing is synchronous in eth_account, so it runs in the default
    executor; a batch of ``sign_transaction`` calls gathered together
    is signed concurrently without blocking the event loop.
    """

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)

    @classmethod
    def from_config(cls, burner_key: str = None, wallet_file: str = WALLET_FILENAME,
                    password: str = None) -> "BurnerSigner":
        if burner_key:
            return cls(burner_key)
        plain = get_or_create_wallet(wallet_file, password)
        return cls(plain["privateKey"])

    @property
    def address(self) -> str:
        return self._account.address

    def _sign(self, tx: dict) -> SignedTx:
        signed = self._account.sign_transaction(tx)
        return SignedTx(
            raw=bytes(signed.raw_transaction),
            tx_hash="0x" + _strip_0x(signed.hash.hex()),
        )

    async def sign_transaction(self, tx: dict) -> SignedTx:
        try:
            return await asyncio.to_thread(self._sign, tx)
        except Exception as e:
            logger.error(f"Failed to sign transaction with nonce {tx.get('nonce')}: {e}")
            raise SigningError(f"Failed to sign transaction with nonce {tx.get('nonce')}") from e
