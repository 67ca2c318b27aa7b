"""db/ -- Storage capability for ModelGate: schema, engine backends, error kinds.

Layer rule: db/ imports only stdlib + SQLAlchemy. Every other package may
import from db/; db/ imports from none of them.
"""
