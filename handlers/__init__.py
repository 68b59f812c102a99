"""
handlers/ ― one module per request kind, loaded by conductor.py.
Each module exposes can_handle(envelope) and run(envelope).
"""
