"""
OLT Gateway - Control de OLTs (SSH/SNMP) vía API
"""
