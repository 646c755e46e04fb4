from game.session import GameSession, GameState, RoundResult, summarize

__all__ = ["GameSession", "GameState", "RoundResult", "summarize"]
