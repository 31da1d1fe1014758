"""Lumen Turn: the conversational turn state machine."""

from lumen.turn.processor import TurnOptions, TurnProcessor, TurnResult

__all__ = ["TurnOptions", "TurnProcessor", "TurnResult"]
