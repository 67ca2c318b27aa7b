"""auth/ -- Authentication and authorization package for ModelGate.

Layer rule: auth/ imports from core/, db/ and projects/ (the gate consults
the access ledger) plus stdlib and third-party libraries. It does NOT import
from api/ or peer/. api/ imports from auth/, not the other way around.
"""
