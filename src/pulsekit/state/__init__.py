from pulsekit.state.store import State, StateStore

__all__ = ["State", "StateStore"]
