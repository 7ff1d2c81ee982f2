"""Core interfaces.

Why:
- Contracts (Protocol) implemented by concrete adapters: discovery sources,
  the authorization transport, the server store, row observers.
- Dependencies point inward: the core depends on these abstractions only.
"""
