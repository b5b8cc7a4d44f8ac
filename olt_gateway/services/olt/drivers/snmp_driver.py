"""
OLT Gateway - Driver SNMP
Consultas de monitoreo/telemetría con pysnmp (API asyncio v3arch).
SNMP no sirve para configurar ONUs: para eso está el driver CLI.

Implementa la capacidad SnmpExecutor.
"""
import logging
from typing import Any, Dict, List, Optional

from pysnmp.hlapi.v3arch.asyncio import (
    CommunityData,
    ContextData,
    ObjectIdentity,
    ObjectType,
    SnmpEngine,
    UdpTransportTarget,
    UsmUserData,
    bulk_walk_cmd,
    get_cmd,
    usmAesCfb128Protocol,
    usmHMACSHAAuthProtocol,
)
from pysnmp.proto.rfc1902 import (
    Counter32,
    Counter64,
    Gauge32,
    Integer32,
    IpAddress,
    OctetString,
    TimeTicks,
    Unsigned32,
)
from pysnmp.proto.rfc1905 import EndOfMibView, NoSuchInstance, NoSuchObject

from olt_gateway.config import get_settings
from olt_gateway.services.olt.olt_base import (
    OltCredentials,
    OltDriverBase,
    OltError,
    SnmpExecutor,
)

logger = logging.getLogger("olt_snmp")

OID_SYS_DESCR = "1.3.6.1.2.1.1.1.0"

SNMP_VERSIONS = {"1": 0, "2c": 1, "3": 3}

MAX_REPETITIONS = 25


def convert_snmp_value(value) -> Any:
    """Convierte un valor pysnmp a tipo Python (str, int o None)."""
    if isinstance(value, (NoSuchObject, NoSuchInstance, EndOfMibView)):
        return None
    if isinstance(value, IpAddress):
        return value.prettyPrint()
    if isinstance(value, OctetString):
        raw = bytes(value)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return value.prettyPrint()
    if isinstance(value, (Integer32, Unsigned32, Counter32, Counter64, Gauge32, TimeTicks)):
        return int(value)
    return value.prettyPrint()


def oid_suffix(base_oid: str, oid: str) -> str:
    """Índice relativo de un OID dentro de un subárbol ("1.3.6.1.x.5.1.2" → "1.2")."""
    base = base_oid.strip(".")
    oid = oid.strip(".")
    if oid.startswith(base + "."):
        return oid[len(base) + 1:]
    return oid


class SnmpDriver(OltDriverBase, SnmpExecutor):
    """
    Driver SNMP v1/v2c/v3.
    La community y versión salen de las credenciales o de metadata
    (snmp_community / snmp_version).
    """

    def __init__(self, credentials: OltCredentials):
        if not credentials.host:
            raise OltError("El driver SNMP requiere host")
        super().__init__(credentials)

        meta = credentials.metadata or {}
        self.version = meta.get("snmp_version") or credentials.snmp_version or "2c"
        if self.version not in SNMP_VERSIONS:
            raise OltError(f"Versión SNMP no soportada: {self.version}")
        self.community = meta.get("snmp_community") or credentials.snmp_community or "public"

        self._engine: Optional[SnmpEngine] = None
        self._transport = None
        self._auth = None

    # ================================================================
    # CONEXIÓN
    # ================================================================

    async def connect(self) -> bool:
        """Prepara motor y transporte UDP. SNMP no tiene handshake."""
        settings = get_settings()
        creds = self.credentials
        try:
            self._engine = SnmpEngine()
            self._auth = self._build_auth()
            self._transport = await UdpTransportTarget.create(
                (creds.host, creds.snmp_port),
                timeout=settings.OLT_SNMP_TIMEOUT,
                retries=settings.OLT_SNMP_RETRIES,
            )
        except Exception as e:
            self._engine = None
            self._transport = None
            raise OltError(f"Error preparando SNMP hacia {creds.host}: {e}") from e

        logger.info(f"SNMP v{self.version} listo para {creds.host}:{creds.snmp_port}")
        return True

    async def disconnect(self):
        if self._engine is not None:
            self._engine.close_dispatcher()
        self._engine = None
        self._transport = None

    def is_connected(self) -> bool:
        return self._transport is not None

    async def health_check(self):
        await self.get_snmp(OID_SYS_DESCR)

    def _build_auth(self):
        if self.version == "3":
            # USM authPriv con las credenciales del equipo (SHA + AES)
            return UsmUserData(
                self.credentials.ssh_username,
                self.credentials.ssh_password,
                self.credentials.ssh_password,
                authProtocol=usmHMACSHAAuthProtocol,
                privProtocol=usmAesCfb128Protocol,
            )
        return CommunityData(self.community, mpModel=SNMP_VERSIONS[self.version])

    def _require_connection(self):
        if not self.is_connected():
            raise OltError("SNMP no conectado")

    # ================================================================
    # SnmpExecutor
    # ================================================================

    async def get_snmp(self, oid: str) -> Any:
        results = await self.bulk_get_snmp([oid])
        if not results:
            raise OltError(f"Sin resultado para OID {oid}")
        return next(iter(results.values()))

    async def bulk_get_snmp(self, oids: List[str]) -> Dict[str, Any]:
        self._require_connection()

        error_indication, error_status, error_index, var_binds = await get_cmd(
            self._engine,
            self._auth,
            self._transport,
            ContextData(),
            *[ObjectType(ObjectIdentity(oid)) for oid in oids],
            lookupMib=False,
        )
        if error_indication:
            raise OltError(f"SNMP GET falló: {error_indication}")
        if error_status:
            raise OltError(f"SNMP GET falló: {error_status.prettyPrint()} en {error_index}")

        return {
            str(name).strip("."): convert_snmp_value(value)
            for name, value in var_binds
        }

    async def walk_snmp(self, oid: str) -> Dict[str, Any]:
        self._require_connection()

        results: Dict[str, Any] = {}
        async for error_indication, error_status, error_index, var_binds in bulk_walk_cmd(
            self._engine,
            self._auth,
            self._transport,
            ContextData(),
            0, MAX_REPETITIONS,
            ObjectType(ObjectIdentity(oid)),
            lexicographicMode=False,
            lookupMib=False,
        ):
            if error_indication:
                raise OltError(f"SNMP WALK falló en {oid}: {error_indication}")
            if error_status:
                raise OltError(
                    f"SNMP WALK falló en {oid}: {error_status.prettyPrint()} en {error_index}"
                )
            for name, value in var_binds:
                results[oid_suffix(oid, str(name))] = convert_snmp_value(value)

        return results
