"""RunDeck API client.

Python client for the RunDeck HTTP API: projects, jobs, executions, history,
nodes and system information, with login or auth-token authentication.
"""

__version__ = "0.1.0"
