"""auth/ -- Authentication for SecretKeeper: credential store, session tokens,
the server-side session store, and the Auth Gate.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or vault/.
api/ imports from auth/, not the other way around.
"""
