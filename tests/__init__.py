"""Test suite for monitor-stream.

This package contains unit and integration tests for all monitor-stream components:

- ``test_models``: Pydantic model validation and EventFilter matching.
- ``test_decoder``: Frame decoding, heartbeat replies, and malformed input.
- ``test_store``: Bounded event log writes, ordering, and queries.
- ``test_projector``: Projection rules, replay, out-of-order events, and TTL clears.
- ``test_scheduler``: Conditional clears on a fake clock.
- ``test_transport``: Connection state machine, heartbeat, and reconnect bound.
- ``test_client``: Frame routing and end-to-end flow over fake sockets.
- ``test_cli``: The ``watch`` and ``snapshot`` commands.
"""
