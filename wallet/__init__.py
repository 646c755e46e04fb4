from wallet.wallet import BurnerSigner, SignedTx, get_or_create_wallet

__all__ = ["BurnerSigner", "SignedTx", "get_or_create_wallet"]
