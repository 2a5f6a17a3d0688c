"""
Sincronización de citas desde la API de citas (IntakeQ).

Paginación por número de página, autenticación por header `X-Auth-Key`.
"""
