"""
OLT Gateway - Adaptador VSOL (V1600 y similares)
CLI estilo Cisco para configurar; SNMP (enterprise 37950) para monitorear.

Las interfaces PON se nombran "gpon {slot}/{puerto}" (slot 0 en los V1600)
o "epon {slot}/{puerto}" cuando metadata["pon_type"] = "epon".

Tablas SNMP de ONUs indexadas por .{pon}.{onu}:
  1.3.6.1.4.1.37950.1.1.6.1.1.2.1.{attr}  → información básica
  1.3.6.1.4.1.37950.1.1.6.1.1.3.1.{attr}  → información óptica (STRING con unidad)
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from olt_gateway.services.olt.olt_adapter import OltAdapter
from olt_gateway.services.olt.olt_base import (
    Capability,
    CliExecutor,
    OltConfigError,
    OltError,
    OnuInfo,
    SnmpExecutor,
)
from olt_gateway.services.olt.verified_operation import (
    RestartResult,
    VerificationPhase,
    VerifySchedule,
    run_verified_operation,
)

logger = logging.getLogger("olt_vsol")

OID_ONU_ADMIN_STATE = "1.3.6.1.4.1.37950.1.1.6.1.1.2.1.1"   # 1=enable, 2=disable
OID_ONU_SERIAL = "1.3.6.1.4.1.37950.1.1.6.1.1.2.1.5"
OID_ONU_MODEL = "1.3.6.1.4.1.37950.1.1.6.1.1.2.1.6"
OID_ONU_PHASE_STATE = "1.3.6.1.4.1.37950.1.1.6.1.1.2.1.10"  # working, syncMib, ...

OID_ONU_TEMPERATURE = "1.3.6.1.4.1.37950.1.1.6.1.1.3.1.3"   # "47.957(C)"
OID_ONU_VOLTAGE = "1.3.6.1.4.1.37950.1.1.6.1.1.3.1.4"       # "3.30(V)"
OID_ONU_BIAS_CURRENT = "1.3.6.1.4.1.37950.1.1.6.1.1.3.1.5"  # "6.220(mA)"
OID_ONU_TX_POWER = "1.3.6.1.4.1.37950.1.1.6.1.1.3.1.6"      # "2.520(dBm)"
OID_ONU_RX_POWER = "1.3.6.1.4.1.37950.1.1.6.1.1.3.1.7"      # "-28.530(dBm)"
OID_ONU_DISTANCE = "1.3.6.1.4.1.37950.1.1.6.1.1.3.1.8"      # metros

# Tabla de puertos PON (índice .{pon})
OID_PON_PORT_NAME = "1.3.6.1.4.1.37950.1.1.6.1.2.1.1"
OID_PON_PORT_ADMIN = "1.3.6.1.4.1.37950.1.1.6.1.2.1.2"       # 1=enabled, 2=disabled
OID_PON_PORT_OPER = "1.3.6.1.4.1.37950.1.1.6.1.2.1.3"        # 1=up, 2=down
OID_PON_PORT_MAX_ONUS = "1.3.6.1.4.1.37950.1.1.6.1.2.1.4"
OID_PON_PORT_REGISTERED = "1.3.6.1.4.1.37950.1.1.6.1.2.1.5"

# Módulo óptico (GBIC/SFP) de cada puerto PON (índice .{pon}), STRING "37.016"
OID_GBIC_TEMPERATURE = "1.3.6.1.4.1.37950.1.1.5.10.13.1.1.2"
OID_GBIC_TX_POWER = "1.3.6.1.4.1.37950.1.1.5.10.13.1.1.5"

# Por debajo de esto la ONU no tiene señal
RX_POWER_FLOOR = -40.0

VLAN_MIN, VLAN_MAX = 1, 4094

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def parse_unit_value(value: Any) -> Optional[float]:
    """Convierte "-28.530(dBm)" → -28.53. Enteros y floats pasan directo."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER.search(str(value))
    return float(match.group(0)) if match else None


def parse_onu_index(index: str) -> Optional[Tuple[int, int]]:
    """Índice SNMP "3.12" → (pon 3, onu 12). None si no tiene ese formato."""
    parts = index.strip(".").split(".")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def onu_state_matches(output: str, onu_id: int, online: bool) -> bool:
    """
    Revisa la fila de la ONU en 'show onu state':

        OnuIndex    Admin State    OMCC State    Phase State    Channel
        1/1/1:1     enable         enable        working        1(GPON)

    En línea = enable + working. Fuera de línea = disable u offline.
    Si la fila no aparece no se confirma nada.
    """
    row = re.compile(rf":{onu_id}(?!\d)")
    for line in output.splitlines():
        if not row.search(line):
            continue
        lowered = line.lower()
        if online:
            return "enable" in lowered and "working" in lowered
        return "disable" in lowered or "offline" in lowered
    return False


def parse_onu_state_table(output: str) -> Dict[int, Tuple[str, str]]:
    """'show onu state' → {onu_id: (admin, phase)}"""
    states = {}
    for line in output.splitlines():
        match = re.search(r'\d+/\d+/\d+:(\d+)\s+(\S+)\s+(\S+)\s+(\S+)', line)
        if match:
            states[int(match.group(1))] = (match.group(2).lower(), match.group(4).lower())
    return states


# ID  Severity  Type   Source     Message          Time
# 1   Critical  LOS    PON 0/1    Loss of signal   2024-01-15 10:30:00
_ALARM_ROW = re.compile(
    r'^(\d+)\s+(\S+)\s+(\S+)\s+((?:PON|ONU|GE|XGE)\s+\d+(?:/\d+)*(?::\d+)?|\S+)'
    r'(?:\s+(.*?))?(?:\s+(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}))?$',
    re.IGNORECASE,
)


def parse_alarms(output: str) -> List[Dict[str, Any]]:
    """'show alarm active' → alarmas. raised_at en ISO 8601 si trae fecha."""
    alarms = []
    for line in output.splitlines():
        match = _ALARM_ROW.match(line.strip())
        if not match:
            continue
        raised_at = None
        if match.group(6):
            raised_at = datetime.strptime(match.group(6), "%Y-%m-%d %H:%M:%S").isoformat()
        alarms.append({
            "id": match.group(1),
            "severity": match.group(2).lower(),
            "type": match.group(3).lower(),
            "source": match.group(4).lower(),
            "message": (match.group(5) or "").strip(),
            "raised_at": raised_at,
        })
    return alarms


def _table_rows(output: str):
    """Filas de una tabla CLI que viene después de la línea separadora '----'."""
    in_table = False
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("-"):
            in_table = True
            continue
        if not line or not in_table or line.lower().startswith("total"):
            continue
        yield line.split()


def parse_vlan_list(output: str) -> List[Dict[str, Any]]:
    """
    'show vlan':
        VLAN  Name          Type    ServicePorts  Description
        ----  ------------  ------  ------------  -----------
        100   CustomerVLAN  static  2             Customer traffic
    """
    vlans = []
    for fields in _table_rows(output):
        if len(fields) < 2 or not fields[0].isdigit():
            continue
        vlans.append({
            "vlan_id": int(fields[0]),
            "name": fields[1],
            "type": fields[2] if len(fields) > 2 else "static",
            "service_ports": int(fields[3]) if len(fields) > 3 and fields[3].isdigit() else 0,
            "description": " ".join(fields[4:]),
        })
    return vlans


def parse_vlan_detail(output: str, vlan_id: int) -> Dict[str, Any]:
    """'show vlan N' con líneas "Clave: valor"."""
    vlan = {"vlan_id": vlan_id, "name": "", "type": "static", "service_ports": 0, "description": ""}
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip()
        if key.startswith("name"):
            vlan["name"] = value
        elif key.startswith("description"):
            vlan["description"] = value
        elif "service port" in key:
            vlan["service_ports"] = int(value) if value.isdigit() else 0
        elif key.startswith("type"):
            vlan["type"] = value
    return vlan


def parse_service_ports(output: str) -> List[Dict[str, Any]]:
    """
    'show service-port all':
        Index  VLAN  Port  ONU  GemPort  UserVLAN  Tag
        -----  ----  ----  ---  -------  --------  ---
        1      100   0/1   5    1        100       translate
    """
    ports = []
    for fields in _table_rows(output):
        if len(fields) < 4 or not fields[0].isdigit():
            continue
        slot, _, pon_port = fields[2].rpartition("/")
        ports.append({
            "index": int(fields[0]),
            "vlan": int(fields[1]) if fields[1].isdigit() else None,
            "slot": int(slot) if slot.isdigit() else 0,
            "pon_port": int(pon_port) if pon_port.isdigit() else None,
            "onu_id": int(fields[3]) if fields[3].isdigit() else None,
            "gemport": int(fields[4]) if len(fields) > 4 and fields[4].isdigit() else None,
            "user_vlan": int(fields[5]) if len(fields) > 5 and fields[5].isdigit() else None,
            "tag_transform": fields[6] if len(fields) > 6 else "",
        })
    return ports


def _search_float(pattern: str, text: str) -> Optional[float]:
    match = re.search(pattern, text, re.IGNORECASE)
    return float(match.group(1)) if match else None


def _search_int(pattern: str, text: str) -> Optional[int]:
    match = re.search(pattern, text, re.IGNORECASE)
    return int(match.group(1)) if match else None


def _search_word(pattern: str, text: str) -> str:
    match = re.search(pattern, text, re.IGNORECASE)
    return match.group(1) if match else ""


class VsolAdapter(OltAdapter):
    """
    Adaptador para OLTs VSOL.
    Primario SSH; el secundario SNMP se crea solo si hay community.
    """

    vendor_name = "vsol"
    display_name = "VSOL"
    default_pon_ports = [(0, port) for port in range(1, 9)]

    def _iface(self, slot: int, pon_port: int) -> str:
        return f"interface {self._pon_type()} {slot}/{pon_port}"

    # ================================================================
    # ONUs NO AUTORIZADAS
    # ================================================================

    async def list_unauthorized_onus(self) -> List[OnuInfo]:
        """
        Lista ONUs no autorizadas.
        Comando VSOL: show pon onu uncfg
        """
        cli = self.require(Capability.CLI, "list_unauthorized_onus")
        output = await cli.exec_command("show pon onu uncfg")
        return self._parse_uncfg_onus(output)

    # ================================================================
    # AUTORIZAR ONU
    # ================================================================

    async def authorize_onu(
        self,
        serial_number: str,
        slot: int,
        pon_port: int,
        onu_id: Optional[int] = None,
        onu_type: str = "",
        line_profile: str = "",
        remote_profile: str = "",
        vlan: str = "",
        description: str = ""
    ) -> Dict[str, Any]:
        """
        Autoriza una ONU en la OLT VSOL.

        Secuencia de comandos VSOL:
        1. configure terminal
        2. interface gpon {slot}/{pon_port}
        3. onu {onu_id} sn {serial} (o bind)
        4. onu {onu_id} vlan {vlan} translate {vlan} (si aplica)
        5. exit / exit
        """
        cli = self.require(Capability.CLI, "authorize_onu")

        if onu_id:
            cmd = f"onu {onu_id} sn {serial_number}"
        else:
            cmd = f"onu bind sn {serial_number}"
        if onu_type:
            cmd += f" type {onu_type}"
        if line_profile:
            cmd += f" profile {line_profile}"

        commands = ["configure terminal", self._iface(slot, pon_port), cmd]
        if vlan and onu_id:
            commands.append(f"onu {onu_id} vlan {vlan} translate {vlan}")
        commands += ["exit", "exit"]

        outputs = await cli.exec_commands(commands)
        auth_output = outputs[2]
        assigned_id = onu_id or self._parse_assigned_onu_id(auth_output)

        logger.info(
            f"ONU autorizada en VSOL: SN={serial_number}, "
            f"Slot={slot}, PON={pon_port}, ID={assigned_id}"
        )

        return {
            "status": "authorized",
            "serial_number": serial_number,
            "slot": slot,
            "pon_port": pon_port,
            "onu_id": assigned_id,
            "vlan": vlan,
            "raw_output": auth_output[:300]
        }

    async def deauthorize_onu(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        """Elimina una ONU de la OLT VSOL."""
        cli = self.require(Capability.CLI, "deauthorize_onu")
        outputs = await cli.exec_commands([
            "configure terminal",
            self._iface(slot, pon_port),
            f"no onu {onu_id}",
            "exit",
            "exit",
        ])

        logger.info(f"ONU eliminada de VSOL: Slot={slot}, PON={pon_port}, ID={onu_id}")

        return {
            "status": "deauthorized",
            "slot": slot,
            "pon_port": pon_port,
            "onu_id": onu_id,
            "raw_output": outputs[2][:300]
        }

    # ================================================================
    # ESTADO Y SEÑAL
    # ================================================================

    async def get_onu_status(self, slot: int, pon_port: int, onu_id: int) -> OnuInfo:
        """Estado de una ONU. SNMP primero, CLI si no hay SNMP o falla."""
        return await self.dispatch(
            "get_onu_status",
            [(Capability.SNMP, self._onu_status_snmp), (Capability.CLI, self._onu_status_cli)],
            slot, pon_port, onu_id,
        )

    async def _onu_status_snmp(self, snmp: SnmpExecutor, slot: int, pon_port: int, onu_id: int) -> OnuInfo:
        index = f"{pon_port}.{onu_id}"
        oids = [OID_ONU_SERIAL, OID_ONU_ADMIN_STATE, OID_ONU_PHASE_STATE, OID_ONU_MODEL,
                OID_ONU_RX_POWER, OID_ONU_DISTANCE]
        values = await snmp.bulk_get_snmp([f"{oid}.{index}" for oid in oids])
        row = {oid: values.get(f"{oid}.{index}") for oid in oids}

        if not row[OID_ONU_SERIAL]:
            raise OltError(f"ONU {slot}/{pon_port}:{onu_id} no encontrada por SNMP")
        return self._snmp_onu(slot, pon_port, onu_id, row)

    async def _onu_status_cli(self, cli: CliExecutor, slot: int, pon_port: int, onu_id: int) -> OnuInfo:
        cmd = f"show pon onu information {self._pon_type()} {slot}/{pon_port} {onu_id}"
        output = await cli.exec_command(cmd)
        return self._parse_onu_info(output, onu_id, slot, pon_port)

    async def get_onu_optical_info(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        """Información óptica de una ONU (potencias, temperatura, voltaje)."""
        return await self.dispatch(
            "get_onu_optical_info",
            [(Capability.SNMP, self._optical_snmp), (Capability.CLI, self._optical_cli)],
            slot, pon_port, onu_id,
        )

    async def _optical_snmp(self, snmp: SnmpExecutor, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        index = f"{pon_port}.{onu_id}"
        fields = {
            "rx_power": OID_ONU_RX_POWER,
            "tx_power": OID_ONU_TX_POWER,
            "temperature": OID_ONU_TEMPERATURE,
            "voltage": OID_ONU_VOLTAGE,
            "bias_current": OID_ONU_BIAS_CURRENT,
            "distance": OID_ONU_DISTANCE,
        }
        values = await snmp.bulk_get_snmp([f"{oid}.{index}" for oid in fields.values()])
        info = {name: parse_unit_value(values.get(f"{oid}.{index}")) for name, oid in fields.items()}
        if info["distance"] is not None:
            info["distance"] = int(info["distance"])
        info["raw_output"] = ""
        return info

    async def _optical_cli(self, cli: CliExecutor, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        cmd = f"show pon onu optical-info {self._pon_type()} {slot}/{pon_port} {onu_id}"
        output = await cli.exec_command(cmd)
        return self._parse_optical_info(output)

    async def list_onus_on_port(self, slot: int, pon_port: int) -> List[OnuInfo]:
        """
        Lista ONUs registradas en un puerto PON VSOL.
        Comando: show pon onu information gpon {slot}/{pon_port}
        """
        cli = self.require(Capability.CLI, "list_onus_on_port")
        cmd = f"show pon onu information {self._pon_type()} {slot}/{pon_port}"
        output = await cli.exec_command(cmd)
        return self._parse_all_onus(output, slot, pon_port)

    async def list_onus(self) -> List[OnuInfo]:
        """
        Todas las ONUs de la OLT.
        Por SNMP es un walk de la tabla; por CLI son varios comandos por puerto.
        """
        return await self.dispatch(
            "list_onus",
            [(Capability.SNMP, self._list_onus_snmp), (Capability.CLI, self._list_onus_cli)],
        )

    async def _list_onus_snmp(self, snmp: SnmpExecutor) -> List[OnuInfo]:
        serials = await snmp.walk_snmp(OID_ONU_SERIAL)
        if not serials:
            return []

        # Atributos opcionales: si un walk falla, se siguen armando las ONUs
        tables: Dict[str, Dict[str, Any]] = {}
        for oid in (OID_ONU_ADMIN_STATE, OID_ONU_PHASE_STATE, OID_ONU_MODEL,
                    OID_ONU_RX_POWER, OID_ONU_DISTANCE):
            try:
                tables[oid] = await snmp.walk_snmp(oid)
            except OltError as e:
                logger.debug(f"Walk opcional {oid} falló: {e}")
                tables[oid] = {}

        onus = []
        for index, serial in serials.items():
            parsed = parse_onu_index(index)
            if parsed is None or not serial:
                continue
            pon_port, onu_id = parsed
            row = {oid: table.get(index) for oid, table in tables.items()}
            row[OID_ONU_SERIAL] = serial
            onus.append(self._snmp_onu(0, pon_port, onu_id, row))

        onus.sort(key=lambda onu: (onu.pon_port, onu.onu_id))
        return onus

    async def _list_onus_cli(self, cli: CliExecutor) -> List[OnuInfo]:
        onus = []
        for slot, pon_port in self._pon_ports():
            outputs = await cli.exec_commands([
                "configure terminal",
                self._iface(slot, pon_port),
                "show onu info all",
                "show onu state",
                "exit",
                "exit",
            ])
            port_onus = self._parse_onu_info_table(outputs[2], slot, pon_port)
            states = parse_onu_state_table(outputs[3])
            for onu in port_onus:
                if onu.onu_id in states:
                    admin, phase = states[onu.onu_id]
                    onu.admin_state = "enabled" if admin == "enable" else "disabled"
                    onu.status = "online" if phase == "working" else "offline"
            onus.extend(port_onus)
        return onus

    async def get_pon_ports(self) -> List[Dict[str, Any]]:
        """Estado de los puertos PON. Solo por SNMP (no hay equivalente CLI)."""
        snmp = self.require(Capability.SNMP, "get_pon_ports")
        names = await snmp.walk_snmp(OID_PON_PORT_NAME)
        admin = await snmp.walk_snmp(OID_PON_PORT_ADMIN)
        oper = await snmp.walk_snmp(OID_PON_PORT_OPER)
        max_onus = await snmp.walk_snmp(OID_PON_PORT_MAX_ONUS)
        registered = await snmp.walk_snmp(OID_PON_PORT_REGISTERED)

        ports = []
        for index, name in names.items():
            try:
                pon_port = int(index.split(".")[-1])
            except ValueError:
                continue
            ports.append({
                "slot": 0,
                "pon_port": pon_port,
                "name": name or f"0/{pon_port}",
                "admin_state": "enabled" if admin.get(index) == 1 else "disabled",
                "oper_state": "up" if oper.get(index) == 1 else "down",
                "max_onus": max_onus.get(index),
                "registered_onus": registered.get(index),
            })
        ports.sort(key=lambda p: p["pon_port"])
        return ports

    # ================================================================
    # CONFIGURACIÓN DE SERVICIO
    # ================================================================

    async def configure_onu_service(
        self,
        slot: int,
        pon_port: int,
        onu_id: int,
        vlan: str,
        service_port: int = 1
    ) -> Dict[str, Any]:
        """Configura VLAN de servicio en ONU VSOL."""
        cli = self.require(Capability.CLI, "configure_onu_service")
        outputs = await cli.exec_commands([
            "configure terminal",
            self._iface(slot, pon_port),
            f"onu {onu_id} vlan {vlan} translate {vlan}",
            "exit",
            "exit",
        ])

        return {
            "status": "configured",
            "slot": slot,
            "pon_port": pon_port,
            "onu_id": onu_id,
            "vlan": vlan,
            "raw_output": outputs[2][:300]
        }

    # ================================================================
    # REINICIO DE ONU
    # ================================================================

    async def restart_onu(self, slot: int, pon_port: int, onu_id: int) -> RestartResult:
        """
        Reinicia una ONU.

        GPON: onu X deactivate → esperar offline → onu X activate → esperar online,
        verificando con 'show onu state' según el calendario configurado.
        EPON: llid reboot X, sin verificación.

        Raises:
            VerifiedOperationError: no se pudo enviar algún comando (e.result trae el avance)
        """
        cli = self.require(Capability.CLI, "restart_onu")
        iface = self._iface(slot, pon_port)

        async def poll_state():
            return await cli.exec_command("show onu state")

        if self._pon_type() == "epon":
            phases = [
                VerificationPhase(
                    name="reboot",
                    action=lambda: cli.exec_commands(
                        ["configure terminal", iface, f"llid reboot {onu_id}", "exit", "exit"]
                    ),
                    poll=poll_state,
                    predicate=lambda output: False,
                    schedule=VerifySchedule(),
                )
            ]
            return await run_verified_operation(
                phases, result_factory=RestartResult.from_outcomes, sleep=self.verify_sleep
            )

        async def leave_config():
            await cli.exec_commands(["exit", "exit"])

        deactivate_schedule, activate_schedule = self._restart_schedules()
        phases = [
            VerificationPhase(
                name="deactivate",
                action=lambda: cli.exec_commands(
                    ["configure terminal", iface, f"onu {onu_id} deactivate"]
                ),
                poll=poll_state,
                predicate=lambda output: onu_state_matches(output, onu_id, online=False),
                schedule=deactivate_schedule,
            ),
            VerificationPhase(
                name="activate",
                action=lambda: cli.exec_command(f"onu {onu_id} activate"),
                poll=poll_state,
                predicate=lambda output: onu_state_matches(output, onu_id, online=True),
                schedule=activate_schedule,
            ),
        ]

        result = await run_verified_operation(
            phases,
            result_factory=RestartResult.from_outcomes,
            cleanup=leave_config,
            sleep=self.verify_sleep,
        )
        logger.info(
            f"Reinicio ONU VSOL {slot}/{pon_port}:{onu_id}: {result.status.value} "
            f"(reintentos={result.retry_count})"
        )
        return result

    # ================================================================
    # SUSPENSIÓN DE ONU (corte de servicio)
    # ================================================================

    async def suspend_onu(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        """Deshabilita la ONU sin borrarla (onu disable / llid disable)."""
        return await self._set_onu_enabled(slot, pon_port, onu_id, enabled=False)

    async def resume_onu(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        return await self._set_onu_enabled(slot, pon_port, onu_id, enabled=True)

    async def _set_onu_enabled(self, slot: int, pon_port: int, onu_id: int, enabled: bool) -> Dict[str, Any]:
        operation = "resume_onu" if enabled else "suspend_onu"
        cli = self.require(Capability.CLI, operation)

        keyword = "llid" if self._pon_type() == "epon" else "onu"
        command = f"{keyword} disable {onu_id}"
        if enabled:
            command = "no " + command

        outputs = await cli.exec_commands([
            "configure terminal",
            self._iface(slot, pon_port),
            command,
            "exit",
            "commit",
            "end",
        ])

        logger.info(
            f"ONU VSOL {'reactivada' if enabled else 'suspendida'}: "
            f"Slot={slot}, PON={pon_port}, ID={onu_id}"
        )
        return {
            "status": "active" if enabled else "suspended",
            "slot": slot,
            "pon_port": pon_port,
            "onu_id": onu_id,
            "raw_output": outputs[2][:300]
        }

    async def get_onu_by_serial(self, serial_number: str) -> Optional[OnuInfo]:
        """
        Busca una ONU por número de serie.
        Comando: show onu sn {serial} (show llid sn en EPON). None si no existe.
        """
        cli = self.require(Capability.CLI, "get_onu_by_serial")
        keyword = "llid" if self._pon_type() == "epon" else "onu"
        output = await cli.exec_command(f"show {keyword} sn {serial_number}")

        lowered = output.lower()
        if "not found" in lowered or "no onu" in lowered:
            return None
        return self._parse_onu_detail(output, serial_number)

    # ================================================================
    # PUERTOS PON
    # ================================================================

    async def get_pon_power(self, slot: int, pon_port: int) -> Dict[str, Any]:
        """Potencia y temperatura del módulo óptico del puerto PON. SNMP primero, CLI después."""
        return await self.dispatch(
            "get_pon_power",
            [(Capability.SNMP, self._pon_power_snmp), (Capability.CLI, self._pon_power_cli)],
            slot, pon_port,
        )

    async def _pon_power_snmp(self, snmp: SnmpExecutor, slot: int, pon_port: int) -> Dict[str, Any]:
        oids = [f"{OID_GBIC_TEMPERATURE}.{pon_port}", f"{OID_GBIC_TX_POWER}.{pon_port}"]
        values = await snmp.bulk_get_snmp(oids)
        temperature = parse_unit_value(values.get(oids[0]))
        tx_power = parse_unit_value(values.get(oids[1]))
        if temperature is None and tx_power is None:
            raise OltError(f"Sin datos GBIC por SNMP para el puerto {slot}/{pon_port}")
        return {
            "slot": slot,
            "pon_port": pon_port,
            "tx_power": tx_power,
            "rx_power": None,
            "temperature": temperature,
            "source": Capability.SNMP.value,
        }

    async def _pon_power_cli(self, cli: CliExecutor, slot: int, pon_port: int) -> Dict[str, Any]:
        output = await cli.exec_command(f"show pon optical {self._pon_type()} {slot}/{pon_port}")
        return {
            "slot": slot,
            "pon_port": pon_port,
            "tx_power": _search_float(r'tx[_\s]*power[:\s]+(-?\d+\.?\d*)', output),
            "rx_power": _search_float(r'rx[_\s]*power[:\s]+(-?\d+\.?\d*)', output),
            "temperature": _search_float(r'temp\w*[:\s]+(-?\d+\.?\d*)', output),
            "source": Capability.CLI.value,
            "raw_output": output[:500],
        }

    async def set_port_state(self, slot: int, pon_port: int, enabled: bool) -> Dict[str, Any]:
        """Habilita (no shutdown) o apaga (shutdown) un puerto PON."""
        cli = self.require(Capability.CLI, "set_port_state")
        command = f"shutdown pon {pon_port}"
        if enabled:
            command = "no " + command

        outputs = await cli.exec_commands(["configure terminal", command, "end"])

        logger.info(f"Puerto PON VSOL {slot}/{pon_port} {'habilitado' if enabled else 'apagado'}")
        return {
            "status": "enabled" if enabled else "disabled",
            "slot": slot,
            "pon_port": pon_port,
            "raw_output": outputs[1][:300]
        }

    # ================================================================
    # ALARMAS Y DIAGNÓSTICO
    # ================================================================

    async def get_alarms(self) -> List[Dict[str, Any]]:
        """Alarmas activas. Comando: show alarm active"""
        cli = self.require(Capability.CLI, "get_alarms")
        output = await cli.exec_command("show alarm active")
        return parse_alarms(output)

    async def run_diagnostics(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        """
        Diagnóstico completo de una ONU: estado, señal, contadores y configuración.
        Cada sección es independiente; si una falla se anota en "errors" y se sigue.
        """
        cli = self.require(Capability.CLI, "run_diagnostics")
        pon_type = self._pon_type()
        keyword = "llid" if pon_type == "epon" else "onu"
        target = f"{pon_type} {slot}/{pon_port} {onu_id}"

        diagnostics: Dict[str, Any] = {
            "slot": slot,
            "pon_port": pon_port,
            "onu_id": onu_id,
            "serial_number": "",
            "status": "unknown",
            "admin_state": "",
            "optical": None,
            "statistics": None,
            "config": None,
            "errors": {},
        }

        try:
            onu = await self.get_onu_status(slot=slot, pon_port=pon_port, onu_id=onu_id)
            diagnostics["serial_number"] = onu.serial_number
            diagnostics["status"] = onu.status
            diagnostics["admin_state"] = onu.admin_state
        except OltError as e:
            diagnostics["errors"]["status"] = str(e)

        try:
            diagnostics["optical"] = await self.get_onu_optical_info(
                slot=slot, pon_port=pon_port, onu_id=onu_id
            )
        except OltError as e:
            diagnostics["errors"]["optical"] = str(e)

        try:
            output = await cli.exec_command(f"show {keyword} statistics {target}")
            diagnostics["statistics"] = self._parse_onu_statistics(output)
        except OltError as e:
            diagnostics["errors"]["statistics"] = str(e)

        try:
            output = await cli.exec_command(f"show {keyword} config {target}")
            diagnostics["config"] = self._parse_onu_config(output)
        except OltError as e:
            diagnostics["errors"]["config"] = str(e)

        if diagnostics["errors"]:
            logger.warning(
                f"Diagnóstico ONU VSOL {slot}/{pon_port}:{onu_id} incompleto: "
                f"{', '.join(diagnostics['errors'])}"
            )
        return diagnostics

    # ================================================================
    # VLANs
    # ================================================================

    async def list_vlans(self) -> List[Dict[str, Any]]:
        cli = self.require(Capability.CLI, "list_vlans")
        output = await cli.exec_command("show vlan")
        return parse_vlan_list(output)

    async def get_vlan(self, vlan_id: int) -> Optional[Dict[str, Any]]:
        """Detalle de una VLAN. None si no existe."""
        cli = self.require(Capability.CLI, "get_vlan")
        output = await cli.exec_command(f"show vlan {vlan_id}")
        if "not exist" in output or "not found" in output or "Error" in output:
            return None
        return parse_vlan_detail(output, vlan_id)

    async def create_vlan(self, vlan_id: int, name: str = "", description: str = "") -> Dict[str, Any]:
        """
        Crea una VLAN.

        Raises:
            OltConfigError: invalid_vlan_id (fuera de 1-4094) o vlan_exists
        """
        if not VLAN_MIN <= vlan_id <= VLAN_MAX:
            raise OltConfigError(
                "invalid_vlan_id",
                f"VLAN {vlan_id} fuera de rango ({VLAN_MIN}-{VLAN_MAX})",
            )
        cli = self.require(Capability.CLI, "create_vlan")

        commands = ["configure terminal", f"vlan {vlan_id}"]
        if name:
            commands.append(f"name {name}")
        if description:
            commands.append(f"description {description}")
        commands += ["exit", "end"]

        try:
            outputs = await cli.exec_commands(commands)
        except OltError as e:
            if "already exists" in str(e):
                raise OltConfigError("vlan_exists", f"La VLAN {vlan_id} ya existe") from e
            raise

        output = "\n".join(outputs)
        if "already exists" in output or "Error" in output:
            raise OltConfigError("vlan_exists", f"La VLAN {vlan_id} ya existe", raw_output=output[:300])

        logger.info(f"VLAN {vlan_id} creada en VSOL {self.credentials.host}")
        return {"status": "created", "vlan_id": vlan_id, "name": name, "description": description}

    async def delete_vlan(self, vlan_id: int, force: bool = False) -> Dict[str, Any]:
        """
        Elimina una VLAN. Sin force, se niega si tiene service-ports.

        Raises:
            OltConfigError: vlan_not_found o vlan_has_service_ports
        """
        vlan = await self.get_vlan(vlan_id)
        if vlan is None:
            raise OltConfigError("vlan_not_found", f"La VLAN {vlan_id} no existe")

        hint = "Usar force=true o borrar antes los service-ports"
        if vlan["service_ports"] and not force:
            raise OltConfigError(
                "vlan_has_service_ports",
                f"La VLAN {vlan_id} tiene {vlan['service_ports']} service-port(s)",
                hint=hint,
            )

        cli = self.require(Capability.CLI, "delete_vlan")
        outputs = await cli.exec_commands(["configure terminal", f"no vlan {vlan_id}", "end"])
        output = "\n".join(outputs)
        if "service port" in output.lower() and not force:
            raise OltConfigError(
                "vlan_has_service_ports",
                f"La VLAN {vlan_id} tiene service-ports configurados",
                hint=hint,
                raw_output=output[:300],
            )

        logger.info(f"VLAN {vlan_id} eliminada de VSOL {self.credentials.host}")
        return {"status": "deleted", "vlan_id": vlan_id}

    # ================================================================
    # SERVICE-PORTS
    # ================================================================

    async def list_service_ports(self) -> List[Dict[str, Any]]:
        cli = self.require(Capability.CLI, "list_service_ports")
        output = await cli.exec_command("show service-port all")
        return parse_service_ports(output)

    async def add_service_port(
        self,
        vlan: int,
        slot: int,
        pon_port: int,
        onu_id: int,
        gemport: int = 1,
        user_vlan: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Mapea VLAN ↔ ONU/gemport.

        Raises:
            OltConfigError: onu_not_found o vlan_not_found
        """
        cli = self.require(Capability.CLI, "add_service_port")
        user_vlan = user_vlan or vlan
        command = (
            f"service-port vlan {vlan} pon {slot}/{pon_port} onu {onu_id} "
            f"gemport {gemport} user-vlan {user_vlan}"
        )

        try:
            outputs = await cli.exec_commands(["configure terminal", command, "end"])
        except OltError as e:
            self._raise_service_port_error(str(e), vlan, slot, pon_port, onu_id, cause=e)
            raise

        output = "\n".join(outputs)
        self._raise_service_port_error(output, vlan, slot, pon_port, onu_id)

        logger.info(f"Service-port VLAN {vlan} → ONU {slot}/{pon_port}:{onu_id} en VSOL")
        return {
            "status": "created",
            "vlan": vlan,
            "slot": slot,
            "pon_port": pon_port,
            "onu_id": onu_id,
            "gemport": gemport,
            "user_vlan": user_vlan,
        }

    def _raise_service_port_error(
        self, text: str, vlan: int, slot: int, pon_port: int, onu_id: int, cause: Exception = None
    ):
        lowered = text.lower()
        if "error" not in lowered and "not exist" not in lowered and "not found" not in lowered:
            return
        if "onu" in lowered:
            raise OltConfigError(
                "onu_not_found",
                f"La ONU {slot}/{pon_port}:{onu_id} no existe",
                raw_output=text[:300],
            ) from cause
        if "vlan" in lowered:
            raise OltConfigError(
                "vlan_not_found",
                f"La VLAN {vlan} no existe",
                raw_output=text[:300],
            ) from cause
        if cause is None:
            raise OltError(f"El equipo rechazó el service-port: {text[:300]}")

    async def delete_service_port(self, slot: int, pon_port: int, onu_id: int) -> Dict[str, Any]:
        cli = self.require(Capability.CLI, "delete_service_port")
        await cli.exec_commands([
            "configure terminal",
            f"no service-port port {slot}/{pon_port} onu {onu_id}",
            "end",
        ])
        logger.info(f"Service-port de ONU {slot}/{pon_port}:{onu_id} eliminado en VSOL")
        return {"status": "deleted", "slot": slot, "pon_port": pon_port, "onu_id": onu_id}

    # ================================================================
    # PARSERS
    # ================================================================

    def _snmp_onu(self, slot: int, pon_port: int, onu_id: int, row: Dict[str, Any]) -> OnuInfo:
        """Arma un OnuInfo a partir de una fila de las tablas SNMP."""
        phase = str(row.get(OID_ONU_PHASE_STATE) or "").lower()
        rx_power = parse_unit_value(row.get(OID_ONU_RX_POWER))
        distance = parse_unit_value(row.get(OID_ONU_DISTANCE))

        online = phase == "working" or (rx_power is not None and rx_power > RX_POWER_FLOOR)
        admin = row.get(OID_ONU_ADMIN_STATE)

        return OnuInfo(
            serial_number=str(row.get(OID_ONU_SERIAL) or ""),
            onu_id=onu_id,
            slot=slot,
            pon_port=pon_port,
            status="online" if online else "offline",
            admin_state="" if admin is None else ("enabled" if admin == 1 else "disabled"),
            rx_power=rx_power,
            distance=int(distance) if distance is not None else None,
            model=str(row.get(OID_ONU_MODEL) or ""),
        )

    def _parse_uncfg_onus(self, output: str) -> List[OnuInfo]:
        """Parsea ONUs no autorizadas de VSOL."""
        onus = []
        for line in output.split("\n"):
            # slot/port  serial  type
            match = re.search(r'(\d+)/(\d+)\s+(\S{8,})\s+(\S+)', line.strip())
            if match:
                onus.append(OnuInfo(
                    serial_number=match.group(3),
                    slot=int(match.group(1)),
                    pon_port=int(match.group(2)),
                    status="unauthorized",
                    model=match.group(4)
                ))
        return onus

    def _parse_assigned_onu_id(self, output: str) -> Optional[int]:
        match = re.search(r'onu\s+(\d+)', output, re.IGNORECASE)
        if match:
            return int(match.group(1))
        return None

    def _parse_onu_info(self, output: str, onu_id: int, slot: int, pon_port: int) -> OnuInfo:
        """Parsea información de una ONU VSOL."""
        status = "unknown"
        lowered = output.lower()
        if "offline" in lowered:
            status = "offline"
        elif "online" in lowered or "working" in lowered:
            status = "online"

        serial = ""
        sn_match = re.search(r'[Ss]erial[:\s]+(\S+)', output)
        if sn_match:
            serial = sn_match.group(1)

        rx_power = None
        rx_match = re.search(r'[Rr]x\s*[Pp]ower[:\s]+(-?\d+\.?\d*)', output)
        if rx_match:
            rx_power = float(rx_match.group(1))

        return OnuInfo(
            serial_number=serial,
            onu_id=onu_id,
            slot=slot,
            pon_port=pon_port,
            status=status,
            rx_power=rx_power
        )

    def _parse_all_onus(self, output: str, slot: int, pon_port: int) -> List[OnuInfo]:
        """Parsea lista de ONUs en un puerto VSOL (id, serial, estado)."""
        onus = []
        for line in output.split("\n"):
            match = re.search(r'^\s*(\d+)\s+(\S{8,})\s+(\S+)', line)
            if match:
                status_raw = match.group(3).lower()
                onus.append(OnuInfo(
                    serial_number=match.group(2),
                    onu_id=int(match.group(1)),
                    slot=slot,
                    pon_port=pon_port,
                    status="online" if "online" in status_raw or "working" in status_raw else "offline"
                ))
        return onus

    def _parse_onu_info_table(self, output: str, slot: int, pon_port: int) -> List[OnuInfo]:
        """
        Parsea 'show onu info all' (V1600):
        Onuindex   Model     Profile        Mode    AuthInfo
        GPON0/1:1  HG6143D   AN5506-04-F1   sn      FHTT59CB8310
        """
        onus = []
        for line in output.split("\n"):
            match = re.search(
                r'^\s*(?:[GE]PON)?\d+/\d+:(\d+)\s+(\S+)\s+(\S+)\s+(\S+)\s+(\S+)',
                line,
                re.IGNORECASE
            )
            if not match:
                continue
            serial = match.group(5)
            if len(serial) < 4:
                continue
            onus.append(OnuInfo(
                serial_number=serial,
                onu_id=int(match.group(1)),
                slot=slot,
                pon_port=pon_port,
                status="online",
                admin_state="enabled",
                model=match.group(2),
                line_profile=match.group(3)
            ))
        return onus

    def _parse_optical_info(self, output: str) -> Dict[str, Any]:
        """Parsea información óptica VSOL."""
        info = {
            "rx_power": None,
            "tx_power": None,
            "temperature": None,
            "voltage": None,
            "bias_current": None,
            "distance": None,
            "raw_output": output[:500]
        }

        patterns = {
            "rx_power": r'Rx\s*(?:optical\s*)?power[:\s]+(-?\d+\.?\d*)',
            "tx_power": r'Tx\s*(?:optical\s*)?power[:\s]+(-?\d+\.?\d*)',
            "temperature": r'temperature[:\s]+(-?\d+\.?\d*)',
            "voltage": r'voltage[:\s]+(\d+\.?\d*)',
            "bias_current": r'bias\s*current[:\s]+(\d+\.?\d*)',
        }
        for key, pattern in patterns.items():
            match = re.search(pattern, output, re.IGNORECASE)
            if match:
                info[key] = float(match.group(1))

        return info

    def _parse_onu_detail(self, output: str, serial_number: str) -> OnuInfo:
        """Parsea 'show onu sn ...' (puerto, id, estado, señal, perfil)."""
        lowered = output.lower()
        status, admin_state = "unknown", ""
        if "online" in lowered or "active" in lowered:
            status, admin_state = "online", "enabled"
        elif "offline" in lowered:
            status, admin_state = "offline", "enabled"
        elif "disabled" in lowered:
            status, admin_state = "offline", "disabled"

        slot = pon_port = None
        port_match = re.search(r'port[:\s]+(\d+)/(\d+)', lowered)
        if port_match:
            slot, pon_port = int(port_match.group(1)), int(port_match.group(2))

        return OnuInfo(
            serial_number=serial_number,
            onu_id=_search_int(r'(?:onu[_\s]*)?id[:\s]+(\d+)', lowered),
            slot=slot,
            pon_port=pon_port,
            status=status,
            admin_state=admin_state,
            rx_power=_search_float(r'rx[_\s]*power[:\s]+(-?\d+\.?\d*)', lowered),
            tx_power=_search_float(r'tx[_\s]*power[:\s]+(-?\d+\.?\d*)', lowered),
            distance=_search_int(r'distance[:\s]+(\d+)', lowered),
            line_profile=_search_word(r'line[_\s]*profile[:\s]+(\S+)', output),
            vlan=_search_word(r'vlan[:\s]+(\d+)', lowered),
        )

    def _parse_onu_statistics(self, output: str) -> Dict[str, Any]:
        """
        Parsea contadores de tráfico:
        Input rate(Bps):    0
        Output bytes:       1144072
        """
        stats = {}
        for direction in ("input", "output"):
            stats[f"{direction}_rate_bps"] = _search_int(rf'{direction}\s*rate\s*\(bps\)[:\s]+(\d+)', output)
            stats[f"{direction}_bytes"] = _search_int(rf'{direction}\s*bytes[:\s]+(\d+)', output)
            stats[f"{direction}_packets"] = _search_int(rf'{direction}\s*packets[:\s]+(\d+)', output)
        stats["errors"] = _search_int(r'errors?[:\s]+(\d+)', output)
        stats["drops"] = _search_int(r'drops?[:\s]+(\d+)', output)
        return stats

    def _parse_onu_config(self, output: str) -> Dict[str, Any]:
        return {
            "line_profile": _search_word(r'line[_\s]*profile[:\s]+(\S+)', output),
            "service_profile": _search_word(r'service[_\s]*profile[:\s]+(\S+)', output),
            "vlan": _search_int(r'vlan[:\s]+(\d+)', output),
            "bandwidth_up": _search_int(r'(?:upstream|ingress)[:\s]+(\d+)', output),
            "bandwidth_down": _search_int(r'(?:downstream|egress)[:\s]+(\d+)', output),
        }
