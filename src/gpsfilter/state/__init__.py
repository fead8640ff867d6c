"""State layer.

Owns the bounded history of accepted positions and the deterministic
accept/reject policy that reads it.  Only the engine mutates history.
"""
