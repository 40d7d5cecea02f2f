"""Offline provider that answers without touching the network."""

from __future__ import annotations

import json
import time


def echo_reply(query: str, *, structured: bool = False) -> str:
    """Wrap the query in an ``echo`` invocation.

    In structured mode the same action is returned as a plan document so that
    the plan validator accepts it.
    """

    if not structured:
        return f"echo '{query}'"

    created_at = int(time.time() * 1000)
    return json.dumps(
        {
            "plan_id": f"echo-{created_at}",
            "command": "echo",
            "args": [query],
            "env": {},
            "stdin": None,
            "paste_policy": "auto",
            "confirm_mode": "auto",
            "expectations": [],
            "failure_signals": [],
            "created_at": created_at,
        },
    )
