"""CRM connectors, token vault and sync orchestration"""

from call_relay.services.crm.base import CRMConnector, RecordRef
from call_relay.services.crm.token_vault import TokenVault, ProviderConfig, build_provider_configs
from call_relay.services.crm.salesforce import SalesforceConnector
from call_relay.services.crm.hubspot import HubSpotConnector
from call_relay.services.crm.dynamics import DynamicsConnector
from call_relay.services.crm.sync import CrmSyncService

CONNECTOR_CLASSES = (SalesforceConnector, HubSpotConnector, DynamicsConnector)


def build_connectors(vault: TokenVault, http_client, timeout: float = 30.0) -> dict:
    """One connector instance per supported provider, keyed by provider name."""
    return {cls.provider: cls(vault, http_client, timeout) for cls in CONNECTOR_CLASSES}


__all__ = [
    "CRMConnector",
    "RecordRef",
    "TokenVault",
    "ProviderConfig",
    "build_provider_configs",
    "SalesforceConnector",
    "HubSpotConnector",
    "DynamicsConnector",
    "CrmSyncService",
    "CONNECTOR_CLASSES",
    "build_connectors",
]
