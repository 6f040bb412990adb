"""
High-level use cases for the cardauth API.

Each service module orchestrates stores and capabilities to implement business
rules (register, risk-gated login, card provisioning). Routers call these
services instead of manipulating the database or sessions directly.
"""
