"""CLI entry point for the FrontDesk scheduling agent.

A terminal chat for trying the agent without the web frontend.  The EHR
backend must be reachable at ``EHR_BASE_URL`` (start ``frontdesk.server``
first); otherwise every tool call reports an error to the model.

Usage:
    python -m frontdesk.main            # normal mode (quiet)
    python -m frontdesk.main --debug    # debug mode (shows API calls)
    python -m frontdesk.main --greet    # let the assistant open the chat
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from frontdesk.agent import AppointmentAgent, CompletionServiceError
from frontdesk.conversation import ConversationError, message_text, role_of

logger = logging.getLogger(__name__)

BANNER = "  FrontDesk Scheduling Agent - CLI Chat"
HELP = "  Commands: 'quit' to exit, 'new' to start over, 'history' to replay,\n  'retry' to resend after an error."


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def _print_history(agent: AppointmentAgent) -> None:
    history = agent.get_conversation_history()
    if not history:
        print("\n(no messages yet)\n")
        return
    print()
    for message in history:
        text = message_text(message) or "(tool request)"
        print(f"  [{role_of(message)}] {text[:300]}")
    print()


def _reply(agent: AppointmentAgent, user_input: str) -> None:
    print("\nAssistant: ", end="", flush=True)
    for fragment in agent.stream_message(user_input):
        print(fragment, end="", flush=True)
    print("\n")


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="FrontDesk Scheduling Agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    parser.add_argument(
        "--greet", action="store_true",
        help="Ask the assistant for an opening line before the first prompt",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print(BANNER)
    print("=" * 60)
    print(HELP)
    print("=" * 60 + "\n")

    agent = AppointmentAgent()

    if args.greet:
        try:
            print(f"Assistant: {agent.get_initial_greeting()}\n")
        except CompletionServiceError as e:
            print(f"Could not reach the assistant: {e}", file=sys.stderr)
            return

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nGoodbye!")
            break

        if not user_input:
            continue

        command = user_input.lower()
        if command in ("exit", "quit", "q"):
            print("\nGoodbye! Have a great day!")
            break
        if command == "new":
            agent.reset_conversation()
            print("\n>> Conversation reset. Starting fresh.\n")
            continue
        if command == "history":
            _print_history(agent)
            continue
        if command == "retry":
            try:
                print(f"\nAssistant: {agent.retry_pending_turn()}\n")
            except ConversationError as e:
                print(f"\n>> {e}.\n")
            except CompletionServiceError as e:
                print(f"\nAssistant: I'm sorry, something went wrong: {e}\n")
            continue

        try:
            _reply(agent, user_input)
        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break
        except CompletionServiceError as e:
            logger.debug("Turn failed", exc_info=True)
            print(f"\nAssistant: I'm sorry, something went wrong: {e}")
            print("     Type 'retry' to try again or 'new' to start over.\n")


if __name__ == "__main__":
    main()
