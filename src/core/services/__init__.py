"""Core services: asynchronous orchestration on top of the domain.

The services hold state (current directory, authorization phase, the
server-presence flag) and talk to adapters only through `core.interfaces`.
"""
