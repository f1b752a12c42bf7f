"""
Real-time multi-user chat room.

Clients log in over HTTP to obtain a bearer token, then open a WebSocket to
'/ws' with it. The broadcast hub keeps the online-presence set, replays the
recent backlog, and serializes post / edit / delete against the message log
before fanning each change out to every connected client.
"""
