"""core/ -- Kernel package: configuration and the shared error taxonomy.

Layer rule: core/ imports only stdlib + third-party libraries.
db/, auth/ and api/ import from core/, never the other way around.
"""
