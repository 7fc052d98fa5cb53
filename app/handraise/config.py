# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Configuration module for handraise.

This module loads the environment variables used by the prompt bridge,
the ask-user flow and the HTTP approval adapter.
"""

import os
import logging
from typing import Optional
from dotenv import load_dotenv

from .constants import ASK_USER_TIMEOUT_SECONDS, DEFAULT_BRIDGE_PATH

logger = logging.getLogger(__name__)

load_dotenv()

HANDRAISE_APPROVAL_URL: Optional[str] = os.getenv("HANDRAISE_APPROVAL_URL")
HANDRAISE_ASK_USER_STATE_PATH: Optional[str] = os.getenv("HANDRAISE_ASK_USER_STATE_PATH")
HANDRAISE_ASK_USER_TIMEOUT_MS: Optional[str] = os.getenv("HANDRAISE_ASK_USER_TIMEOUT_MS")

if not HANDRAISE_APPROVAL_URL:
    logger.info(
        "HANDRAISE_APPROVAL_URL environment variable not set. "
        "The HTTP approval adapter cannot be used until it is configured."
    )


def default_bridge_path() -> str:
    """
    Resolve the prompt bridge document path.

    Returns:
        The configured state path, or the default location under /tmp
    """
    if HANDRAISE_ASK_USER_STATE_PATH and HANDRAISE_ASK_USER_STATE_PATH.strip():
        return HANDRAISE_ASK_USER_STATE_PATH.strip()
    return DEFAULT_BRIDGE_PATH


def resolve_ask_user_timeout(value: Optional[float] = None) -> float:
    """
    Resolve how long an ask-user call waits for a response.

    Args:
        value: Explicit timeout in seconds; used when positive

    Returns:
        Timeout in seconds, falling back to HANDRAISE_ASK_USER_TIMEOUT_MS and
        then to the built-in default
    """
    if value is not None and value > 0:
        return float(value)
    if not HANDRAISE_ASK_USER_TIMEOUT_MS:
        return float(ASK_USER_TIMEOUT_SECONDS)
    try:
        parsed = int(HANDRAISE_ASK_USER_TIMEOUT_MS.strip())
    except ValueError:
        logger.warning("Ignoring invalid HANDRAISE_ASK_USER_TIMEOUT_MS value: %s", HANDRAISE_ASK_USER_TIMEOUT_MS)
        return float(ASK_USER_TIMEOUT_SECONDS)
    if parsed <= 0:
        return float(ASK_USER_TIMEOUT_SECONDS)
    return parsed / 1000.0
