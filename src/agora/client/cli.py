"""CLI client for the Agora webhook agent."""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    List,
    Tuple,
    cast,
)

import httpx

from agora.common import (
    AnsiColors,
    colored_print,
)
from agora.config import settings

logger = logging.getLogger(__name__)

HISTORY_TURNS = 10


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(
    endpoint: str, data: Dict[str, Any], base_url: str | None = None, max_retries: int = 5
) -> Dict[str, Any]:
    """POST *data* to the API and return the JSON body, retrying while the server starts."""
    api_url = f"{base_url or f'http://localhost:{settings.API_PORT}'}{endpoint}"

    for attempt in range(max_retries):
        try:
            with httpx.Client(timeout=120.0) as client:
                response = client.post(api_url, json=data)
        except httpx.ConnectError as e:
            if attempt < max_retries - 1:
                retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(retry_delay)
                continue
            logger.error("API request error: %s", str(e))
            return {"error": f"Error connecting to API: {e}"}
        except httpx.HTTPError as e:
            logger.error("API request error: %s", str(e))
            return {"error": f"Error connecting to API: {e}"}

        try:
            body = cast(Dict[str, Any], response.json())
        except ValueError:
            body = {"error": f"HTTP {response.status_code}: {response.text}"}
        return body

    return {"error": f"Failed to connect to API after {max_retries} attempts"}


def run_cli(api_key: str, base_url: str | None = None) -> None:
    """Chat with a community agent through the webhook endpoint."""
    history: List[Dict[str, str]] = []

    colored_print("\n🔮 Agora shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN)
    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        response = call_api(
            "/webhook-agent",
            {
                "message": user_msg,
                "api_key": api_key,
                "conversation_history": history[-HISTORY_TURNS:],
            },
            base_url=base_url,
        )

        if "error" in response:
            detail = f" ({response['message']})" if response.get("message") else ""
            colored_print(f"⚠️ {response['error']}{detail}", AnsiColors.RED)
            continue

        for call in response.get("tool_calls") or []:
            colored_print(f"[{call['tool']}] {call['result']}", AnsiColors.GREY)

        reply = response.get("response") or ""
        colored_print(reply, AnsiColors.YELLOW)

        history.append({"role": "user", "content": user_msg})
        history.append({"role": "assistant", "content": reply})


if __name__ == "__main__":
    import sys  # pylint: disable=import-outside-toplevel

    if len(sys.argv) < 2:
        sys.exit("usage: python -m agora.client.cli <api-key>")
    run_cli(sys.argv[1])
