"""projects/ -- Shared projects, role assignments and cached queries for ModelGate.

Layer rule: projects/ imports only db/ + stdlib + third-party libraries.
It does NOT import from api/, auth/, or peer/.
auth/gate.py and api/ import from projects/, not the other way around.
"""
