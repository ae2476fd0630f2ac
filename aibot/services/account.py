"""
aibot/services/account.py
Bot account provisioning against the platform accounts service.

The call is safe to repeat: an account that already exists counts as
provisioned.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx
import jwt
import structlog

from ..core.exceptions import ProvisioningError
from ..core.metadata import Metadata, get_metadata

logger = structlog.get_logger("account")

ACCOUNT_ALREADY_EXISTS = "AccountAlreadyExists"
TOKEN_ALGORITHM = "HS256"
TOKEN_TTL = timedelta(minutes=10)


def generate_token(email: str, workspace: str, **extra_claims: Any) -> str:
    """Sign a short-lived service token with the server secret."""
    now = datetime.now(timezone.utc)
    payload = {
        "account": email,
        "workspace": workspace,
        "iat": int(now.timestamp()),
        "exp": int((now + TOKEN_TTL).timestamp()),
        **extra_claims,
    }
    return jwt.encode(payload, get_metadata(Metadata.SERVER_SECRET), algorithm=TOKEN_ALGORITHM)


def _error_code(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("code") or error.get("status") or error.get("message") or "")
    return str(error)


async def create_bot_account(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    *,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """
    Make sure the bot account exists.

    Raises:
        ProvisioningError: on transport failure, a non-2xx response or an
            RPC error other than "already exists"
    """
    endpoint = get_metadata(Metadata.ACCOUNTS_ENDPOINT)
    workspace = get_metadata(Metadata.SUPPORT_WORKSPACE_ID)
    user_agent = get_metadata(Metadata.USER_AGENT)

    token = generate_token(email, workspace, service=user_agent)
    body: Dict[str, Any] = {
        "method": "createAccount",
        "params": {
            "email": email,
            "password": password,
            "first": first_name,
            "last": last_name,
        },
    }
    headers = {
        "Authorization": f"Bearer {token}",
        "User-Agent": user_agent,
    }

    logger.info("creating_bot_account", email=email, endpoint=endpoint)
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(endpoint, json=body, headers=headers)
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPStatusError as e:
        raise ProvisioningError(
            f"accounts service returned {e.response.status_code}",
            details={"status_code": e.response.status_code},
        ) from e
    except httpx.HTTPError as e:
        raise ProvisioningError(f"accounts service unreachable: {e}") from e
    except ValueError as e:
        raise ProvisioningError(f"invalid accounts service response: {e}") from e

    error = payload.get("error") if isinstance(payload, dict) else None
    if error:
        code = _error_code(error)
        if ACCOUNT_ALREADY_EXISTS in code:
            logger.info("bot_account_already_exists", email=email)
            return
        raise ProvisioningError(f"accounts service error: {code}", details={"error": error})

    logger.info("bot_account_created", email=email)


__all__ = ["create_bot_account", "generate_token", "ACCOUNT_ALREADY_EXISTS"]
