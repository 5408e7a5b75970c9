"""Minimal demonstration of a streamed chat turn."""

import sys

from writing_core import ChatSession

if __name__ == "__main__":
    question = " ".join(sys.argv[1:]) or "Rewrite this more politely: send me the report now."
    session = ChatSession()
    printed = 0

    def show(text: str) -> None:
        global printed
        sys.stdout.write(text[printed:])
        sys.stdout.flush()
        printed = len(text)

    print("User:", question)
    print("Assistant: ", end="")
    turn = session.ask(question, on_chunk=show)
    print()
    if turn is not None and turn.cancelled:
        print("(cancelled)")
