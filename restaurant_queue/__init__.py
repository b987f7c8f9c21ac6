"""Restaurant queue lifecycle tracker (MQTT front end).

Tracks each customer's entry through one merchant queue:
- join -> waiting (dense positions 1..N, ordered by join time)
- call -> called (table-ready notification to the customer's live connection)
- seat (with verification code) / no-show / withdraw -> terminal

`QueueTracker` is the transport-free core; `service` exposes it over MQTT and
`customer`, `merchant` and `generator` are small clients.
"""
