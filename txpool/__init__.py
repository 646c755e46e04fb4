from txpool.pool import PoolEntry, PoolState, PreSignedPool

__all__ = ["PoolEntry", "PoolState", "PreSignedPool"]
