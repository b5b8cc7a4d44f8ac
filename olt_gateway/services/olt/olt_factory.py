"""
OLT Gateway - OLT Factory
Crea el adaptador correcto según la marca de OLT y el protocolo pedido.
Patrón Factory: driver de protocolo (CLI/SNMP) envuelto en el adaptador de la marca.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, List

from olt_gateway.services.olt.drivers.cli_driver import SshCliDriver
from olt_gateway.services.olt.drivers.snmp_driver import SnmpDriver
from olt_gateway.services.olt.olt_adapter import OltAdapter
from olt_gateway.services.olt.olt_base import Capability, OltCredentials, OltError
from olt_gateway.services.olt.vendors.vsol import VsolAdapter
from olt_gateway.services.olt.vendors.zte import ZteAdapter

logger = logging.getLogger("olt_factory")

# Registro de adaptadores disponibles
ADAPTERS = {
    "zte": ZteAdapter,
    "vsol": VsolAdapter,
}

# Protocolos que acepta cada marca; el primero es el primario
CAPABILITY_MATRIX: Dict[str, List[Capability]] = {
    "zte": [Capability.CLI, Capability.SNMP],
    "vsol": [Capability.CLI, Capability.SNMP],
}

PROTOCOL_DRIVERS = {
    Capability.CLI: SshCliDriver,
    Capability.SNMP: SnmpDriver,
}

# Aliases de marcas (para que el operador no tenga que escribir exacto)
BRAND_ALIASES = {
    "zte": "zte",
    "zxa10": "zte",
    "c300": "zte",
    "c320": "zte",
    "c600": "zte",
    "vsol": "vsol",
    "v-sol": "vsol",
    "v1600": "vsol",
}

PROTOCOL_ALIASES = {
    "cli": Capability.CLI,
    "ssh": Capability.CLI,
    "snmp": Capability.SNMP,
}


def normalize_brand(brand: str) -> str:
    brand = (brand or "").lower().strip()
    return BRAND_ALIASES.get(brand, brand)


def get_olt_driver(credentials: OltCredentials) -> OltAdapter:
    """
    Crea y retorna el adaptador correcto según la marca de la OLT.

    Args:
        credentials: Credenciales con brand definido (protocol opcional)

    Returns:
        Adaptador de la marca envolviendo el driver del protocolo pedido

    Raises:
        OltError: Si la marca no tiene adaptador o no acepta el protocolo
    """
    normalized = normalize_brand(credentials.brand)

    adapter_class = ADAPTERS.get(normalized)
    if not adapter_class:
        available = ", ".join(ADAPTERS.keys())
        raise OltError(
            f"No hay driver disponible para marca '{credentials.brand}'. "
            f"Marcas soportadas: {available}"
        )

    protocols = CAPABILITY_MATRIX[normalized]
    requested = (credentials.protocol or "").lower().strip()
    protocol = PROTOCOL_ALIASES.get(requested) if requested else protocols[0]
    if protocol not in protocols:
        available = ", ".join(p.value for p in protocols)
        raise OltError(
            f"Protocolo '{credentials.protocol}' no soportado para {normalized}. "
            f"Protocolos: {available}"
        )

    config = replace(credentials, brand=normalized, protocol=protocol.value)
    driver = PROTOCOL_DRIVERS[protocol](config)

    logger.info(f"Creando driver OLT: {normalized}/{protocol.value} para {credentials.host}")
    return adapter_class(driver, config)


def get_supported_brands() -> list:
    """Retorna lista de marcas soportadas."""
    return list(ADAPTERS.keys())


def get_vendor_capabilities(brand: str) -> Dict[str, Any]:
    """Protocolos aceptados por una marca y cuál es el primario."""
    normalized = normalize_brand(brand)
    protocols = CAPABILITY_MATRIX.get(normalized)
    if not protocols:
        raise OltError(f"Marca no soportada: {brand}")
    return {
        "brand": normalized,
        "primary": protocols[0].value,
        "protocols": [p.value for p in protocols],
    }
