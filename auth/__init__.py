"""auth/ -- Credential issuance and session authentication for Social App.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, notify/, or core/.
api/ wires auth/ together with notify/ and core/, not the other way around.
"""
