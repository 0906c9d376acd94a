"""Single-server key/value store that executes each client request at most once."""