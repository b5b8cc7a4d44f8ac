"""
OLT Gateway - Drivers de protocolo
Un driver por protocolo de acceso (SSH/CLI, SNMP).
"""
from olt_gateway.services.olt.drivers.cli_driver import SshCliDriver
from olt_gateway.services.olt.drivers.snmp_driver import SnmpDriver

__all__ = ["SshCliDriver", "SnmpDriver"]
