"""
OLT Gateway - Services
Servicios de integración con equipos de red.
"""
