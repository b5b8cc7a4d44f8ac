"""
OLT Gateway - OLT Integration
Sesión CLI interactiva, drivers SSH/SNMP y adaptadores multi-marca.
Marcas soportadas: ZTE, VSOL.
"""
from olt_gateway.services.olt.olt_base import (
    Capability,
    CapabilityUnavailableError,
    OltCredentials,
    OltDriverBase,
    OltError,
    OnuInfo,
    OperationFailedError,
    VerifiedOperationError,
)
from olt_gateway.services.olt.olt_adapter import OltAdapter
from olt_gateway.services.olt.olt_factory import (
    get_olt_driver,
    get_supported_brands,
    get_vendor_capabilities,
)
from olt_gateway.services.olt.verified_operation import RestartResult, VerificationStatus

__all__ = [
    "Capability",
    "CapabilityUnavailableError",
    "OltAdapter",
    "OltCredentials",
    "OltDriverBase",
    "OltError",
    "OnuInfo",
    "OperationFailedError",
    "RestartResult",
    "VerificationStatus",
    "VerifiedOperationError",
    "get_olt_driver",
    "get_supported_brands",
    "get_vendor_capabilities",
]
