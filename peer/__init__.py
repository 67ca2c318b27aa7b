"""peer/ -- Client for the external analysis engine.

Layer rule: peer/ imports only core/ + stdlib + requests. It does NOT import
from api/, auth/, db/, or projects/.
"""
