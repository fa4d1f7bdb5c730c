#!/usr/bin/env python3
"""
Create an API key and an inbound webhook for a tenant

Usage: python scripts/seed_tenant.py <tenant_id> [webhook_name]
"""

import asyncio
import os
import secrets
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from call_relay.core.config import settings
from call_relay.db import CallRelayRepository, InboundWebhookDB, create_adapter


async def seed(tenant_id: str, webhook_name: str) -> None:
    repository = CallRelayRepository(create_adapter(settings))
    if not await repository.initialize():
        print("Database initialization failed")
        sys.exit(1)
    try:
        api_key = f"cr_{secrets.token_urlsafe(24)}"
        await repository.create_api_key(tenant_id, api_key)
        webhook = InboundWebhookDB(
            id=f"wh_{secrets.token_urlsafe(16)}", tenant_id=tenant_id, name=webhook_name
        )
        await repository.create_inbound_webhook(webhook)
    finally:
        await repository.close()

    print(f"Tenant:      {tenant_id}")
    print(f"API key:     {api_key}")
    print(f"Webhook URL: {settings.api_base_url.rstrip('/')}/webhook/{webhook.id}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(seed(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else "Voice platform"))
