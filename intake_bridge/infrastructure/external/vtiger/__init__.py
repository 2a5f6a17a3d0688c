"""
Integración con el CRM (vTiger webservices).

- session_manager: challenge/login + cache de sesión por owner
- vtiger_client: query y update con el bucle de reintentos compartido
- lead_sync: fetch paginado por offset de Leads
"""
