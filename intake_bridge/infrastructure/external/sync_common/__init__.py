"""
Piezas compartidas por los pipelines de sincronización (citas y leads).

Estos pipelines están diseñados para ejecutarse como job (background / CLI),
no como parte del request/response del API.

Objetivos de diseño:
- Idempotencia: se puede ejecutar N veces sin duplicar datos (dedupe por id de origen).
- Reanudable: el cursor se persiste de forma atómica después de cada página.
- Acotado: pausas entre requests y tope de requests por corrida.
- Reintentos explícitos: una clasificación (status, body) -> RetryClass y un único bucle.
"""
