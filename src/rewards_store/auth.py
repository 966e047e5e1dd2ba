"""
IAM authentication tokens for DSQL connections.

A token only has to survive the connection handshake, so it is issued fresh
for every connection attempt with a short validity window.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import boto3
from loguru import logger

from .config import ClusterConfig

DEFAULT_TOKEN_EXPIRES_IN = 30


@dataclass(frozen=True)
class Credential:
    token: str
    expires_in: int


def create_api_client(region: str, session: Optional[boto3.session.Session] = None) -> Any:
    """Build the boto3 ``dsql`` client used for token signing."""
    session = session or boto3.session.Session()
    return session.client("dsql", region_name=region)


class TokenIssuer:
    """Signs short-lived DSQL auth tokens for a cluster.

    The ``admin`` role requires the admin token variant; every other role gets
    the regular ``DbConnect`` token.
    """

    def __init__(self, expires_in: int = DEFAULT_TOKEN_EXPIRES_IN):
        if expires_in <= 0:
            raise ValueError("expires_in must be > 0")
        self.expires_in = expires_in

    def issue(self, config: ClusterConfig) -> Credential:
        client = config.api_client
        if client is None:
            raise RuntimeError("ClusterConfig.api_client is required to issue tokens")
        if config.is_admin:
            token = client.generate_db_connect_admin_auth_token(
                Hostname=config.endpoint, Region=config.region, ExpiresIn=self.expires_in
            )
        else:
            token = client.generate_db_connect_auth_token(
                Hostname=config.endpoint, Region=config.region, ExpiresIn=self.expires_in
            )
        logger.debug(f"Issued auth token for {config.username}@{config.endpoint}")
        return Credential(token=token, expires_in=self.expires_in)
