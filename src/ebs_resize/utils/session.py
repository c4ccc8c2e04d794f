#!/usr/bin/env python3
"""
utils/session.py

Session management utilities for AWS interactions.

Provides a single place to build a boto3 Session from a named profile,
the environment, or the default credential chain.
"""

import boto3
from typing import Optional
from botocore.exceptions import NoCredentialsError, ProfileNotFound
from .exceptions import CLIError
from .logger import setup_logger

logger = setup_logger(__name__, "session.log")


class SessionManager:
    """Manages AWS sessions and credential handling."""

    @classmethod
    def get_session(cls, region: str, profile: Optional[str] = None) -> boto3.Session:
        """Create a boto3 Session for the given region and optional profile.

        Credentials are resolved eagerly so that a missing or broken profile
        fails before any instance is touched.
        """
        try:
            session = boto3.Session(profile_name=profile, region_name=region)
        except ProfileNotFound as e:
            raise CLIError(f"AWS profile not found: {profile}") from e

        try:
            credentials = session.get_credentials()
        except NoCredentialsError as e:
            raise CLIError(f"Unable to load AWS credentials: {e}") from e

        if credentials is None:
            raise CLIError(
                "No AWS credentials found. Configure a profile or set "
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY."
            )

        logger.debug(f"Created AWS session (profile={profile or 'default'}, region={region})")
        return session
