"""Container entry point: ``python main.py`` starts the HTTP API.

Equivalent to ``contact-relay serve``. It sits at the repository root so a
container can start the service without relying on the console script.
"""

from contact_relay.cli import main

if __name__ == "__main__":
    main(["serve"])
