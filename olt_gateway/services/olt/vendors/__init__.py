"""
OLT Gateway - Adaptadores por marca
Comandos y parsers propios de cada fabricante sobre OltAdapter.
"""
from olt_gateway.services.olt.vendors.vsol import VsolAdapter
from olt_gateway.services.olt.vendors.zte import ZteAdapter

__all__ = ["VsolAdapter", "ZteAdapter"]
