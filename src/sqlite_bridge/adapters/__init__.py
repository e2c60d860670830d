"""Adapters layer - concrete implementations at the native boundary.

Outbound adapters (calls into the engine):
    - native: cffi declarations and the loaded engine library
    - marshal: Value <-> engine cell conversion
    - context: ownership boxes for host objects handed to the engine
    - functions, collations, tokenizers: the callback bridge
"""
