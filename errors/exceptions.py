"""
Custom exception classes for txreflex
"""

class ReflexError(Exception):
    """Base exception for pool, ledger and game operations"""
    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or "REFLEX_ERROR"

class InitializationFailure(ReflexError):
    """Startup queries or the initial signing batch failed"""
    def __init__(self, message: str):
        super().__init__(message, "INITIALIZATION_FAILURE")

class PoolExhausted(ReflexError):
    """No pre-signed transaction left to hand out"""
    def __init__(self, cursor: int, size: int):
        message = f"No pre-signed transactions available (cursor={cursor}, size={size})"
        super().__init__(message, "POOL_EXHAUSTED")
        self.cursor = cursor
        self.size = size

class RefillFailure(ReflexError):
    """Background refill could not sign its batch"""
    def __init__(self, start_sequence: int, count: int, reason: str):
        message = f"Refill of {count} transactions from sequence {start_sequence} failed: {reason}"
        super().__init__(message, "REFILL_FAILURE")
        self.start_sequence = start_sequence
        self.count = count

class BroadcastFailure(ReflexError):
    """Synchronous broadcast was rejected or did not complete"""
    def __init__(self, message: str):
        super().__init__(message, "BROADCAST_FAILURE")

class SigningError(ReflexError):
    """Transaction signing failed"""
    def __init__(self, message: str = "Failed to sign transaction"):
        super().__init__(message, "SIGNING_ERROR")

class LedgerError(ReflexError):
    """RPC query against the ledger failed"""
    def __init__(self, message: str):
        super().__init__(message, "LEDGER_ERROR")

class GameNotReady(ReflexError):
    """Game cannot start until the pool is primed"""
    def __init__(self, message: str = "Transaction pool is not ready"):
        super().__init__(message, "NOT_READY")
