"""vault/ -- Storage collaborator for user secrets (credentials, notes, cards).

Layer rule: vault/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or auth/.
"""
