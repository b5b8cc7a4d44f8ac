"""
OLT Gateway - Adaptador base (registro de capacidades + despacho)
Envuelve un driver de protocolo y decide qué capacidad atiende cada operación.

  - Si el driver primario es CLI y falta SNMP, crea un driver SNMP secundario
    (mismo host, puerto secundario o 161) cuando hay community configurada.
  - Si el primario es SNMP y falta CLI, crea un driver SSH secundario
    cuando hay credenciales CLI en metadata.

El secundario es opcional: si no se puede crear o conectar, solo fallan
las operaciones que lo necesitan.
"""
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from olt_gateway.config import get_settings
from olt_gateway.services.olt.drivers.cli_driver import SshCliDriver
from olt_gateway.services.olt.drivers.snmp_driver import OID_SYS_DESCR, SnmpDriver
from olt_gateway.services.olt.olt_base import (
    Capability,
    CapabilityUnavailableError,
    CliExecutor,
    OltCredentials,
    OltDriverBase,
    OltError,
    OnuInfo,
    OperationFailedError,
    SnmpExecutor,
)
from olt_gateway.services.olt.verified_operation import VerifySchedule

logger = logging.getLogger("olt_adapter")

# Sistema MIB-II (RFC 1213)
OID_SYS_UPTIME = "1.3.6.1.2.1.1.3.0"
OID_SYS_NAME = "1.3.6.1.2.1.1.5.0"

Route = Tuple[Capability, Callable[..., Awaitable[Any]]]


class OltAdapter(OltDriverBase):
    """
    Base de los adaptadores por marca.
    Las capacidades se calculan una sola vez en el constructor (sin I/O).
    """

    vendor_name = "generic"
    display_name = "OLT"
    health_command = "show version"
    default_pon_ports: List[Tuple[int, int]] = []

    # Función de espera entre consultas de verificación (None = asyncio.sleep)
    verify_sleep: Optional[Callable[[float], Awaitable[Any]]] = None

    snmp_driver_class = SnmpDriver
    cli_driver_class = SshCliDriver

    def __init__(self, base_driver: OltDriverBase, credentials: OltCredentials):
        super().__init__(credentials)
        self.base_driver = base_driver
        self.secondary_driver: Optional[OltDriverBase] = None
        self.cli_executor: Optional[CliExecutor] = None
        self.snmp_executor: Optional[SnmpExecutor] = None

        if isinstance(base_driver, CliExecutor):
            self.cli_executor = base_driver
        if isinstance(base_driver, SnmpExecutor):
            self.snmp_executor = base_driver

        if self.cli_executor is not None and self.snmp_executor is None:
            self._create_snmp_driver()
        elif self.snmp_executor is not None and self.cli_executor is None:
            self._create_cli_driver()

    # ================================================================
    # DRIVERS SECUNDARIOS
    # ================================================================

    def _create_snmp_driver(self):
        """Driver SNMP para monitoreo cuando el primario es CLI."""
        creds = self.credentials
        meta = creds.metadata or {}
        community = creds.snmp_community or meta.get("snmp_community")
        if not community:
            logger.debug(f"{creds.host}: sin community SNMP, no se crea driver secundario")
            return

        snmp_config = replace(
            creds,
            protocol=Capability.SNMP.value,
            snmp_port=creds.secondary_port or creds.snmp_port or 161,
            snmp_community=community,
            snmp_version=meta.get("snmp_version") or creds.snmp_version or "2c",
            metadata=dict(meta),
        )
        try:
            driver = self.snmp_driver_class(snmp_config)
        except OltError as e:
            logger.warning(f"{creds.host}: no se pudo crear driver SNMP secundario: {e}")
            return

        self.secondary_driver = driver
        if isinstance(driver, SnmpExecutor):
            self.snmp_executor = driver

    def _create_cli_driver(self):
        """Driver SSH para operaciones que SNMP no cubre (ej: CPU/memoria en V-SOL)."""
        creds = self.credentials
        meta = creds.metadata or {}
        username = meta.get("cli_username") or (creds.ssh_username if creds.ssh_password else "")
        password = meta.get("cli_password") or creds.ssh_password
        if not username or not password:
            logger.debug(f"{creds.host}: sin credenciales CLI, no se crea driver secundario")
            return

        port = creds.ssh_port or 22
        if meta.get("cli_port"):
            try:
                port = int(meta["cli_port"])
            except ValueError:
                logger.warning(f"{creds.host}: cli_port inválido {meta['cli_port']!r}, se usa {port}")

        cli_config = replace(
            creds,
            host=meta.get("cli_host") or creds.host,
            ssh_port=port,
            ssh_username=username,
            ssh_password=password,
            protocol=Capability.CLI.value,
            metadata=dict(meta),
        )
        try:
            driver = self.cli_driver_class(cli_config)
        except OltError as e:
            logger.warning(f"{creds.host}: no se pudo crear driver CLI secundario: {e}")
            return

        self.secondary_driver = driver
        if isinstance(driver, CliExecutor):
            self.cli_executor = driver

    # ================================================================
    # CONEXIÓN
    # ================================================================

    async def connect(self) -> bool:
        """Conecta el primario (sus errores se propagan) y luego el secundario."""
        await self.base_driver.connect()

        if self.secondary_driver is not None:
            try:
                await self.secondary_driver.connect()
            except Exception as e:
                logger.warning(
                    f"{self.credentials.host}: driver secundario no conectó, "
                    f"se continúa solo con el primario: {e}"
                )
        return True

    async def disconnect(self):
        """Desconecta primero el secundario; solo el error del primario cuenta."""
        if self.secondary_driver is not None:
            try:
                await self.secondary_driver.disconnect()
            except Exception as e:
                logger.debug(f"{self.credentials.host}: error desconectando secundario: {e}")
        await self.base_driver.disconnect()

    def is_connected(self) -> bool:
        return self.base_driver.is_connected()

    def capabilities(self) -> List[Capability]:
        """Capacidades disponibles ahora mismo (presentes y conectadas)."""
        return [c for c in Capability if self._available(c) is not None]

    # ================================================================
    # DESPACHO
    # ================================================================

    def _available(self, capability: Capability):
        executor = self.cli_executor if capability is Capability.CLI else self.snmp_executor
        if executor is None:
            return None
        if isinstance(executor, OltDriverBase) and not executor.is_connected():
            return None
        return executor

    def require(self, capability: Capability, operation: str):
        """Executor de una operación que solo tiene una forma de hacerse."""
        executor = self._available(capability)
        if executor is None:
            raise CapabilityUnavailableError(operation, [capability])
        return executor

    async def dispatch(self, operation: str, routes: List[Route], *args, **kwargs) -> Any:
        """
        Ejecuta la operación con la primera capacidad disponible según el orden
        declarado. Si falla, prueba la siguiente.

        Raises:
            CapabilityUnavailableError: ninguna capacidad declarada está disponible
            OperationFailedError: todas las capacidades intentadas fallaron
        """
        attempts: List[Tuple[Capability, Exception]] = []
        missing: List[Capability] = []

        for capability, handler in routes:
            executor = self._available(capability)
            if executor is None:
                missing.append(capability)
                continue
            try:
                return await handler(executor, *args, **kwargs)
            except Exception as e:
                logger.warning(f"{operation} vía {capability.value} falló: {e}")
                attempts.append((capability, e))

        if not attempts:
            raise CapabilityUnavailableError(operation, missing)
        raise OperationFailedError(operation, attempts) from attempts[-1][1]

    # ================================================================
    # OPERACIONES COMUNES
    # ================================================================

    async def health_check(self):
        await self.dispatch(
            "health_check",
            [(Capability.CLI, self._health_cli), (Capability.SNMP, self._health_snmp)],
        )

    async def _health_cli(self, cli: CliExecutor):
        await cli.exec_command(self.health_command)

    async def _health_snmp(self, snmp: SnmpExecutor):
        await snmp.get_snmp(OID_SYS_DESCR)

    async def execute_command(self, command: str) -> str:
        """Ejecuta un comando CLI raw."""
        cli = self.require(Capability.CLI, "execute_command")
        return await cli.exec_command(command)

    async def execute_commands(self, commands: List[str]) -> List[str]:
        cli = self.require(Capability.CLI, "execute_commands")
        return await cli.exec_commands(commands)

    async def get_olt_status(self) -> Dict[str, Any]:
        """Estado general de la OLT. SNMP (grupo system) primero, CLI después."""
        return await self.dispatch(
            "get_olt_status",
            [(Capability.SNMP, self._olt_status_snmp), (Capability.CLI, self._olt_status_cli)],
        )

    async def _olt_status_snmp(self, snmp: SnmpExecutor) -> Dict[str, Any]:
        values = await snmp.bulk_get_snmp([OID_SYS_DESCR, OID_SYS_NAME, OID_SYS_UPTIME])
        uptime = values.get(OID_SYS_UPTIME)
        return {
            "reachable": True,
            "source": Capability.SNMP.value,
            "brand": self.vendor_name,
            "host": self.credentials.host,
            "description": values.get(OID_SYS_DESCR) or "",
            "hostname": values.get(OID_SYS_NAME) or "",
            # sysUpTime viene en centésimas de segundo
            "uptime_seconds": int(uptime) // 100 if isinstance(uptime, int) else None,
        }

    async def _olt_status_cli(self, cli: CliExecutor) -> Dict[str, Any]:
        output = await cli.exec_command(self.health_command)
        return {
            "reachable": True,
            "source": Capability.CLI.value,
            "brand": self.vendor_name,
            "host": self.credentials.host,
            "description": output[:500],
            "hostname": "",
            "uptime_seconds": None,
        }

    # ================================================================
    # OPERACIONES POR MARCA
    # Cada marca que las soporte las implementa; el resto responde
    # "no soportada" (CapabilityUnavailableError sin capacidades faltantes).
    # ================================================================

    async def get_pon_ports(self) -> List[Dict[str, Any]]:
        """Estado de los puertos PON."""
        raise CapabilityUnavailableError("get_pon_ports", [])

    async def get_pon_power(self, slot: int, pon_port: int) -> Dict[str, Any]:
        raise CapabilityUnavailableError("get_pon_power", [])

    async def set_port_state(self, slot: int, pon_port: int, enabled: bool) -> Dict[str, Any]:
        raise CapabilityUnavailableError("set_port_state", [])

    async def get_alarms(self) -> List[Dict[str, Any]]:
        raise CapabilityUnavailableError("get_alarms", [])

    async def get_onu_by_serial(self, serial_number: str) -> Optional[OnuInfo]:
        raise CapabilityUnavailableError("get_onu_by_serial", [])

    async def suspend_onu(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        raise CapabilityUnavailableError("suspend_onu", [])

    async def resume_onu(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        raise CapabilityUnavailableError("resume_onu", [])

    async def run_diagnostics(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        raise CapabilityUnavailableError("run_diagnostics", [])

    async def list_vlans(self) -> List[Dict[str, Any]]:
        raise CapabilityUnavailableError("list_vlans", [])

    async def get_vlan(self, vlan_id: int) -> Optional[Dict[str, Any]]:
        raise CapabilityUnavailableError("get_vlan", [])

    async def create_vlan(self, vlan_id: int, name: str = "", description: str = "") -> Dict[str, Any]:
        raise CapabilityUnavailableError("create_vlan", [])

    async def delete_vlan(self, vlan_id: int, force: bool = False) -> Dict[str, Any]:
        raise CapabilityUnavailableError("delete_vlan", [])

    async def list_service_ports(self) -> List[Dict[str, Any]]:
        raise CapabilityUnavailableError("list_service_ports", [])

    async def add_service_port(
        self,
        vlan: int,
        slot: int,
        pon_port: int,
        onu_id: int,
        gemport: int = 1,
        user_vlan: Optional[int] = None,
    ) -> Dict[str, Any]:
        raise CapabilityUnavailableError("add_service_port", [])

    async def delete_service_port(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        raise CapabilityUnavailableError("delete_service_port", [])

    # ================================================================
    # PRUEBA DE CONEXIÓN
    # ================================================================

    async def test_connection(self) -> Dict[str, Any]:
        """Prueba conexión (conecta, consulta y desconecta) y obtiene info del equipo."""
        try:
            async with self:
                status = await self.get_olt_status()
                capabilities = [c.value for c in self.capabilities()]
        except OltError as e:
            return {
                "connected": False,
                "brand": self.display_name,
                "host": self.credentials.host,
                "error": str(e)
            }

        return {
            "connected": True,
            "brand": self.display_name,
            "model": self.credentials.model or f"{self.display_name}-OLT",
            "host": self.credentials.host,
            "hostname": status.get("hostname", ""),
            "capabilities": capabilities,
            "version_info": status.get("description", "")
        }

    # ================================================================
    # HELPERS PARA ADAPTADORES
    # ================================================================

    def _pon_ports(self) -> List[Tuple[int, int]]:
        """
        Puertos PON a recorrer en listados completos por CLI.
        metadata["pon_ports"] = "0/1,0/2" o "1/1-8"; si no, los default de la marca.
        """
        raw = (self.credentials.metadata or {}).get("pon_ports", "").strip()
        if not raw:
            return list(self.default_pon_ports)

        ports = []
        for item in raw.split(","):
            item = item.strip()
            if not item:
                continue
            slot_part, _, port_part = item.rpartition("/")
            if "-" not in port_part:
                _, slot, port = self.parse_frame_slot_port(item)
                ports.append((slot, port))
                continue
            try:
                slot = int(slot_part.split("/")[-1]) if slot_part else 0
                first, last = (int(x) for x in port_part.split("-", 1))
            except ValueError as e:
                raise OltError(f"pon_ports inválido en metadata: {item!r}") from e
            ports.extend((slot, p) for p in range(first, last + 1))
        return ports

    def _pon_type(self) -> str:
        """gpon (default) o epon, según metadata["pon_type"]."""
        return (self.credentials.metadata or {}).get("pon_type", "gpon").lower()

    def _restart_schedules(self) -> Tuple[VerifySchedule, VerifySchedule]:
        settings = get_settings()
        return (
            VerifySchedule.from_waits(settings.OLT_RESTART_DEACTIVATE_WAITS),
            VerifySchedule.from_waits(settings.OLT_RESTART_ACTIVATE_WAITS),
        )
