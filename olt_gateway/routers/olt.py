"""
OLT Gateway - Router: OLT Management
Endpoints para operar OLTs con las credenciales que trae cada request.
Test de conexión, listar ONUs, autorizar, ver señal, reiniciar, etc.
Soporta múltiples marcas (ZTE, VSOL) con adaptador automático.
"""
import asyncio
from contextlib import asynccontextmanager

from fastapi import APIRouter, HTTPException

from olt_gateway.schemas.olt import (
    AddServicePortRequest,
    AuthorizeOnuRequest,
    ConfigureServiceRequest,
    CreateVlanRequest,
    DeleteVlanRequest,
    ExecuteCommandRequest,
    OltConnection,
    OltRequest,
    OnuRequest,
    OnuResponse,
    PonPortRequest,
    PortRequest,
    PortStateRequest,
    RestartOnuRequest,
    SerialRequest,
    VlanRequest,
)
from olt_gateway.services.olt.olt_base import (
    CapabilityUnavailableError,
    OltConfigError,
    OltError,
    VerificationInconclusive,
    VerifiedOperationError,
)
from olt_gateway.services.olt.olt_factory import (
    get_olt_driver,
    get_supported_brands,
    get_vendor_capabilities,
)

router = APIRouter(prefix="/olt", tags=["OLT"])

CONFIG_ERROR_STATUS = {
    "invalid_vlan_id": 422,
    "vlan_not_found": 404,
    "onu_not_found": 404,
    "vlan_exists": 409,
    "vlan_has_service_ports": 409,
}


@asynccontextmanager
async def olt_session(connection: OltConnection):
    """Adaptador conectado durante el bloque; siempre se desconecta al salir."""
    driver = get_olt_driver(connection.to_credentials())
    async with driver:
        yield driver


def olt_http_error(e: OltError) -> HTTPException:
    """Traduce errores de OLT a HTTP."""
    if isinstance(e, CapabilityUnavailableError):
        return HTTPException(501, f"Operación no disponible: {e}")
    if isinstance(e, OltConfigError):
        status_code = CONFIG_ERROR_STATUS.get(e.code, 400)
        return HTTPException(status_code, {"error": str(e), "code": e.code, "hint": e.hint})
    if isinstance(e, (VerifiedOperationError, VerificationInconclusive)) and e.result is not None:
        status_code = 409 if isinstance(e, VerificationInconclusive) else 502
        return HTTPException(status_code, {"error": str(e), "result": e.result.to_dict()})
    return HTTPException(502, f"Error OLT: {e}")


def signal_quality(rx_power: float) -> str:
    """Nivel normal: -8 a -23 dBm. Alerta si menor a -25 dBm."""
    if rx_power >= -8:
        return "excelente"
    if rx_power >= -15:
        return "buena"
    if rx_power >= -23:
        return "aceptable"
    if rx_power >= -25:
        return "baja"
    return "critica"


# ================================================================
# INFO
# ================================================================

@router.get("/supported-brands")
async def list_supported_brands():
    """Lista las marcas de OLT soportadas y sus protocolos."""
    return {
        "brands": get_supported_brands(),
        "capabilities": [get_vendor_capabilities(b) for b in get_supported_brands()],
    }


@router.post("/test")
async def test_olt_connection(data: OltRequest):
    """Prueba la conexión a la OLT (no lanza error: connected=false)."""
    try:
        driver = get_olt_driver(data.olt.to_credentials())
    except OltError as e:
        return {"connected": False, "host": data.olt.host, "error": str(e)}
    return await driver.test_connection()


@router.post("/olt-status")
async def get_olt_status(data: OltRequest):
    """Estado general de la OLT (SNMP system group o 'show version')."""
    try:
        async with olt_session(data.olt) as driver:
            return await driver.get_olt_status()
    except OltError as e:
        raise olt_http_error(e)


@router.post("/pon-ports")
async def list_pon_ports(data: OltRequest):
    """Estado de los puertos PON (requiere SNMP)."""
    try:
        async with olt_session(data.olt) as driver:
            ports = await driver.get_pon_ports()
    except OltError as e:
        raise olt_http_error(e)
    return {"host": data.olt.host, "total": len(ports), "pon_ports": ports}


@router.post("/pon-power")
async def get_pon_power(data: PonPortRequest):
    """Potencia Tx y temperatura del módulo óptico de un puerto PON."""
    try:
        async with olt_session(data.olt) as driver:
            return await driver.get_pon_power(slot=data.slot, pon_port=data.pon_port)
    except OltError as e:
        raise olt_http_error(e)


@router.post("/port-state")
async def set_pon_port_state(data: PortStateRequest):
    """Habilita o apaga un puerto PON (todas sus ONUs quedan sin servicio)."""
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.set_port_state(
                slot=data.slot, pon_port=data.pon_port, enabled=data.enabled
            )
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "Puerto habilitado" if data.enabled else "Puerto apagado", "result": result}


@router.post("/alarms")
async def list_alarms(data: OltRequest):
    """Alarmas activas de la OLT."""
    try:
        async with olt_session(data.olt) as driver:
            alarms = await driver.get_alarms()
    except OltError as e:
        raise olt_http_error(e)
    return {"host": data.olt.host, "total": len(alarms), "alarms": alarms}


# ================================================================
# ONUs
# ================================================================

@router.post("/unauthorized-onus")
async def list_unauthorized_onus(data: OltRequest):
    """Lista ONUs detectadas pero no autorizadas (parpadeando)."""
    try:
        async with olt_session(data.olt) as driver:
            onus = await driver.list_unauthorized_onus()
    except OltError as e:
        raise olt_http_error(e)

    return {
        "host": data.olt.host,
        "total": len(onus),
        "unauthorized_onus": [OnuResponse.from_onu(onu) for onu in onus],
    }


@router.post("/onus")
async def list_onus(data: PortRequest):
    """ONUs registradas: de un puerto PON si se indica, o de toda la OLT."""
    try:
        async with olt_session(data.olt) as driver:
            if data.pon_port is not None:
                onus = await driver.list_onus_on_port(slot=data.slot or 0, pon_port=data.pon_port)
            else:
                onus = await driver.list_onus()
    except OltError as e:
        raise olt_http_error(e)

    return {
        "host": data.olt.host,
        "slot": data.slot,
        "pon_port": data.pon_port,
        "total": len(onus),
        "onus": [OnuResponse.from_onu(onu) for onu in onus],
    }


@router.post("/onu-status")
async def get_onu_status(data: OnuRequest):
    """Obtiene el estado de una ONU específica (online/offline)."""
    try:
        async with olt_session(data.olt) as driver:
            onu = await driver.get_onu_status(slot=data.slot, pon_port=data.pon_port, onu_id=data.onu_id)
    except OltError as e:
        raise olt_http_error(e)
    return OnuResponse.from_onu(onu)


@router.post("/onu-optical")
async def get_onu_optical_info(data: OnuRequest):
    """
    Obtiene información óptica de una ONU.
    Rx Power, Tx Power, temperatura, voltaje.
    """
    try:
        async with olt_session(data.olt) as driver:
            info = await driver.get_onu_optical_info(
                slot=data.slot, pon_port=data.pon_port, onu_id=data.onu_id
            )
    except OltError as e:
        raise olt_http_error(e)

    if info.get("rx_power") is not None:
        info["signal_quality"] = signal_quality(info["rx_power"])
    return {"onu_id": data.onu_id, **info}


@router.post("/authorize-onu")
async def authorize_onu_in_olt(data: AuthorizeOnuRequest):
    """Autoriza una ONU directamente en la OLT."""
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.authorize_onu(
                serial_number=data.serial_number,
                slot=data.slot,
                pon_port=data.pon_port,
                onu_id=data.onu_id,
                onu_type=data.onu_type,
                line_profile=data.line_profile,
                remote_profile=data.remote_profile,
                vlan=data.vlan,
                description=data.description,
            )
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "ONU autorizada", "result": result}


@router.post("/deauthorize-onu")
async def deauthorize_onu_from_olt(data: OnuRequest):
    """Elimina una ONU de la OLT. La ONU vuelve a parpadear."""
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.deauthorize_onu(
                slot=data.slot, pon_port=data.pon_port, onu_id=data.onu_id
            )
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "ONU desautorizada", "result": result}


@router.post("/configure-service")
async def configure_onu_service(data: ConfigureServiceRequest):
    """Configura VLAN de servicio en una ONU ya autorizada."""
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.configure_onu_service(
                slot=data.slot,
                pon_port=data.pon_port,
                onu_id=data.onu_id,
                vlan=data.vlan,
                service_port=data.service_port,
            )
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "Servicio configurado", "result": result}


@router.post("/restart-onu")
async def restart_onu(data: RestartOnuRequest):
    """
    Reinicia una ONU y verifica que se caiga y vuelva.
    Puede tardar decenas de segundos (esperas de verificación).
    """
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.restart_onu(
                slot=data.slot, pon_port=data.pon_port, onu_id=data.onu_id
            )
        if data.require_verified:
            result.raise_if_unverified()
    except OltError as e:
        raise olt_http_error(e)
    return result.to_dict()


@router.post("/onu-by-serial")
async def find_onu_by_serial(data: SerialRequest):
    """Busca una ONU autorizada por número de serie."""
    try:
        async with olt_session(data.olt) as driver:
            onu = await driver.get_onu_by_serial(data.serial_number)
    except OltError as e:
        raise olt_http_error(e)
    if onu is None:
        raise HTTPException(404, f"ONU {data.serial_number} no encontrada")
    return OnuResponse.from_onu(onu)


@router.post("/suspend-onu")
async def suspend_onu(data: OnuRequest):
    """Corta el servicio de una ONU sin borrar su configuración."""
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.suspend_onu(slot=data.slot, pon_port=data.pon_port, onu_id=data.onu_id)
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "ONU suspendida", "result": result}


@router.post("/resume-onu")
async def resume_onu(data: OnuRequest):
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.resume_onu(slot=data.slot, pon_port=data.pon_port, onu_id=data.onu_id)
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "ONU reactivada", "result": result}


@router.post("/onu-diagnostics")
async def run_onu_diagnostics(data: OnuRequest):
    """
    Diagnóstico completo de una ONU (estado, señal, tráfico, configuración).
    Las secciones que fallan vienen en "errors"; el resto se devuelve igual.
    """
    try:
        async with olt_session(data.olt) as driver:
            diagnostics = await driver.run_diagnostics(
                slot=data.slot, pon_port=data.pon_port, onu_id=data.onu_id
            )
    except OltError as e:
        raise olt_http_error(e)

    optical = diagnostics.get("optical") or {}
    if optical.get("rx_power") is not None:
        diagnostics["signal_quality"] = signal_quality(optical["rx_power"])
    return diagnostics


# ================================================================
# VLANs Y SERVICE-PORTS
# ================================================================

@router.post("/vlans")
async def list_vlans(data: OltRequest):
    try:
        async with olt_session(data.olt) as driver:
            vlans = await driver.list_vlans()
    except OltError as e:
        raise olt_http_error(e)
    return {"host": data.olt.host, "total": len(vlans), "vlans": vlans}


@router.post("/vlan")
async def get_vlan(data: VlanRequest):
    try:
        async with olt_session(data.olt) as driver:
            vlan = await driver.get_vlan(data.vlan_id)
    except OltError as e:
        raise olt_http_error(e)
    if vlan is None:
        raise HTTPException(404, f"VLAN {data.vlan_id} no encontrada")
    return vlan


@router.post("/create-vlan")
async def create_vlan(data: CreateVlanRequest):
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.create_vlan(
                vlan_id=data.vlan_id, name=data.name, description=data.description
            )
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "VLAN creada", "result": result}


@router.post("/delete-vlan")
async def delete_vlan(data: DeleteVlanRequest):
    """Elimina una VLAN. Con service-ports configurados requiere force=true."""
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.delete_vlan(vlan_id=data.vlan_id, force=data.force)
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "VLAN eliminada", "result": result}


@router.post("/service-ports")
async def list_service_ports(data: OltRequest):
    try:
        async with olt_session(data.olt) as driver:
            ports = await driver.list_service_ports()
    except OltError as e:
        raise olt_http_error(e)
    return {"host": data.olt.host, "total": len(ports), "service_ports": ports}


@router.post("/add-service-port")
async def add_service_port(data: AddServicePortRequest):
    """Mapea una VLAN a una ONU (gemport y VLAN de usuario)."""
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.add_service_port(
                vlan=data.vlan,
                slot=data.slot,
                pon_port=data.pon_port,
                onu_id=data.onu_id,
                gemport=data.gemport,
                user_vlan=data.user_vlan,
            )
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "Service-port creado", "result": result}


@router.post("/delete-service-port")
async def delete_service_port(data: OnuRequest):
    try:
        async with olt_session(data.olt) as driver:
            result = await driver.delete_service_port(
                slot=data.slot, pon_port=data.pon_port, onu_id=data.onu_id
            )
    except OltError as e:
        raise olt_http_error(e)
    return {"message": "Service-port eliminado", "result": result}


# ================================================================
# COMANDO RAW
# ================================================================

@router.post("/execute")
async def execute_raw_commands(data: ExecuteCommandRequest):
    """Ejecuta comandos CLI raw en la OLT. Solo para técnicos avanzados."""
    try:
        async with olt_session(data.olt) as driver:
            outputs = await asyncio.wait_for(
                driver.execute_commands(data.commands), timeout=data.timeout
            )
    except asyncio.TimeoutError:
        raise HTTPException(504, f"Los comandos excedieron {data.timeout}s")
    except OltError as e:
        raise olt_http_error(e)

    return {
        "host": data.olt.host,
        "results": [
            {"command": command, "output": output}
            for command, output in zip(data.commands, outputs)
        ],
    }
