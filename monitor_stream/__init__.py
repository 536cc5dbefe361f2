"""monitor-stream: a resilient streaming client for agent activity monitors.

This package connects to a monitor server over WebSocket, ingests the replayed
and live event stream, and keeps a consistent picture of "what is happening
right now": which agent is active and which command is running.

Example usage::

    # Via CLI
    monitor-stream watch --url ws://localhost:4001/stream

    # Programmatic usage
    from monitor_stream.client import MonitorClient

    async with MonitorClient() as client:
        await client.wait_for_snapshot(timeout=10.0)
        print(client.state.current_command)
"""

__version__ = "0.1.0"
__author__ = "monitor-stream Contributors"
__license__ = "MIT"

__all__ = ["__version__", "__author__", "__license__"]
