#!/usr/bin/env python3
"""
UiPath OAuth Authorization Script

This script runs the OAuth authorization code flow (with PKCE) for an
external application and stores the resulting tokens in a session file
that applications using the SDK can reuse.

It starts a local callback server on the configured redirect URI, so the
redirect URI registered for the external application must point at this
machine (e.g. http://localhost:8765/callback).

Usage:
    python scripts/authorize.py

    # Show current authorization status
    python scripts/authorize.py --status

    # Revoke existing authorization
    python scripts/authorize.py --revoke

Prerequisites:
    export UIPATH_ORG_NAME="your_org"
    export UIPATH_TENANT_NAME="your_tenant"
    export UIPATH_CLIENT_ID="your_client_id"
    export UIPATH_REDIRECT_URI="http://localhost:8765/callback"
    export UIPATH_SCOPE="OR.Folders OR.Jobs"
"""

import argparse
import logging
import sys

from uipath_sdk import ConfigurationError, FileStorage, SDKSettings, UiPath

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_sdk(settings: SDKSettings) -> UiPath:
    """Create an OAuth-mode SDK backed by the session file."""
    sdk = UiPath.from_env(settings, storage=FileStorage(settings.token_file))
    if not sdk.config.is_oauth:
        raise ConfigurationError("Authorization requires OAuth settings, not UIPATH_SECRET")
    return sdk


def authorize(settings: SDKSettings, open_browser: bool = True, timeout: int = 300) -> int:
    """
    Run the authorization flow.

    Args:
        settings: Environment settings
        open_browser: Whether to automatically open browser
        timeout: Seconds to wait for the callback

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    sdk = build_sdk(settings)
    try:
        if sdk.token_manager.load_from_storage():
            status = sdk.auth.get_status()
            logger.info("Already authorized!")
            logger.info(f"   Token expires in {status.get('expires_in_seconds', 0)} seconds")
            logger.info("   Use --revoke to re-authorize")
            return 0

        logger.info("Starting OAuth authorization flow...")
        if sdk.authorize_interactively(open_browser=open_browser, timeout=timeout):
            logger.info("Authorization successful!")
            logger.info(f"   Tokens saved to: {settings.token_file}")
            return 0

        logger.error("Authorization failed")
        logger.error("   Please check the error messages above and try again")
        return 1
    finally:
        sdk.dispose()


def show_status(settings: SDKSettings) -> int:
    """Print the stored authorization status."""
    sdk = build_sdk(settings)
    try:
        sdk.token_manager.load_from_storage()
        status = sdk.auth.get_status()
        for key, value in status.items():
            print(f"{key}: {value}")
        return 0 if status.get("authorized") else 1
    finally:
        sdk.dispose()


def revoke(settings: SDKSettings) -> int:
    """
    Revoke current authorization.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    sdk = build_sdk(settings)
    try:
        sdk.logout()
        logger.info("Authorization revoked locally. Re-authorization required.")
        return 0
    finally:
        sdk.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="UiPath OAuth authorization")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--revoke", action="store_true", help="Revoke stored authorization")
    group.add_argument("--status", action="store_true", help="Show authorization status")
    parser.add_argument(
        "--no-browser", action="store_true", help="Do not open the browser automatically"
    )
    parser.add_argument(
        "--timeout", type=int, default=300, help="Seconds to wait for the callback (default: 300)"
    )
    args = parser.parse_args(argv)

    try:
        settings = SDKSettings()
        if args.revoke:
            return revoke(settings)
        if args.status:
            return show_status(settings)
        return authorize(settings, open_browser=not args.no_browser, timeout=args.timeout)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
