"""Deterministic pre-adjudication rules.

Everything the generator must not decide on its own (elapsed time, historical
events, survival gating, repetition control, end of game) is computed here and
written into the request's `logical_results` block.
"""
