"""HSM Integration Package.

This package contains the Hardware State Manager (HSM) integration. Contains:

- client: Module containing the HTTP client implementing the group store contract.
"""
