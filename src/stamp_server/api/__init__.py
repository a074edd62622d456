"""HTTP API: app factory, routers, auth dependencies and error mapping."""
