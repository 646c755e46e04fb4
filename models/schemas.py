"""
Pydantic models for API responses
"""

from pydantic import BaseModel, Field
from typing import Optional, List


class AccountResponse(BaseModel):
    address: str = Field(..., description="Burner account address")
    balance_wei: int = Field(..., ge=0)
    balance_eth: str = Field(..., description="Balance in ether, 4 decimal places")


class PoolStatsResponse(BaseModel):
    address: str
    state: str
    size: int = Field(..., ge=0)
    cursor: int = Field(..., ge=0)
    available: int = Field(..., ge=0)
    base_sequence: int = Field(..., ge=0)
    next_sequence: int = Field(..., ge=0)
    refill_in_flight: bool
    refills_completed: int
    refills_failed: int
    low_water_mark: int
    gas_price: int
    gas_limit: int
    last_error: Optional[str] = None


class RoundResultModel(BaseModel):
    attempt: int
    reaction_ms: int
    tx_ms: int
    total_ms: int
    failed: bool = False
    sequence: Optional[int] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None


class GameSummaryModel(BaseModel):
    rounds: int
    failed_rounds: int
    avg_reaction_ms: int
    avg_tx_ms: int
    avg_total_ms: int
    tx_overhead_pct: int


class GameSnapshotResponse(BaseModel):
    state: str
    ready: bool
    message: str
    pool_state: str
    pool_error: Optional[str] = None
    round: int
    rounds: int
    results: List[RoundResultModel] = Field(default_factory=list)
    summary: GameSummaryModel
