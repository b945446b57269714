"""Dynamic Tool Sync (DTS).

Keeps a local tool registry in step with a remote service directory and
config store:
 - watches service membership and instance health
 - reads each service's `<service>-mcp-tools.json` document
 - adds/removes tools in the sink so only eligible services expose tools
 - parks itself when the backend reports a protocol version >= 3.0.0

Two triggers drive the same reconciliation: a periodic sweep and push
notifications from the backend.
"""
