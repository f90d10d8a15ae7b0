from __future__ import annotations

__all__ = ["merge_v1", "initial_state_from_envelope_v1", "envelope_from_state_v1"]


def __getattr__(name: str):
    if name == "merge_v1":
        from .merge_engine_v1 import merge_v1

        return merge_v1
    if name == "initial_state_from_envelope_v1":
        from .state_builder_v1 import initial_state_from_envelope_v1

        return initial_state_from_envelope_v1
    if name == "envelope_from_state_v1":
        from .envelope_projector_v1 import envelope_from_state_v1

        return envelope_from_state_v1
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
