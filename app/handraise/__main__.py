# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Start the line-mode responder for the configured prompt bridge.

    python -m handraise

The bridge document location comes from HANDRAISE_ASK_USER_STATE_PATH.
"""

import logging

from . import config
from .bridge import PromptBridge
from .responder import run_responder

# Logging Setup
logger = logging.getLogger(__name__)


def main() -> int:
    """Run the responder until interrupted or input ends."""
    logging.basicConfig(level=logging.WARNING, format="[%(levelname)s] %(name)s: %(message)s")
    bridge = PromptBridge(config.default_bridge_path())
    try:
        answered = run_responder(bridge)
    except (KeyboardInterrupt, EOFError):
        print()
        print("[handraise ask cli] stopped.")
        return 0
    logger.info("Responder answered %d prompt(s).", answered)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
