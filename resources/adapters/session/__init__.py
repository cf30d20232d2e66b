"""Session credential adapter: token holders and claim decoding."""

from resources.adapters.session.adapter import CredentialProvider, DeviceSecretProvider
from resources.adapters.session.component import RESOURCE_COMPONENT_ID
from resources.adapters.session.credentials import (
    EnvDeviceSecretProvider,
    StaticCredentialProvider,
    StaticDeviceSecretProvider,
    claims_expiry,
    decode_claims,
    extract_user_id,
)

__all__ = [
    "CredentialProvider",
    "DeviceSecretProvider",
    "EnvDeviceSecretProvider",
    "RESOURCE_COMPONENT_ID",
    "StaticCredentialProvider",
    "StaticDeviceSecretProvider",
    "claims_expiry",
    "decode_claims",
    "extract_user_id",
]
