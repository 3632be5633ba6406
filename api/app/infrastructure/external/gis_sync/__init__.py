"""
Pipeline de sincronización one-way: API GIS -> almacén de documentos.

Este paquete se ejecuta como job (cron, disparo manual desde la UI o CLI),
nunca como parte de una transacción de negocio.

Objetivos de diseño:
- Idempotencia: se puede ejecutar N veces sin duplicar documentos.
- Claves estables: cada registro del GIS se resuelve siempre al mismo documento.
- Propiedad de campos explícita: lo que manda el GIS se refresca,
  lo cargado localmente (contacto, credenciales, activo) se preserva.
- Tolerancia: un registro malo cuenta como error y no corta el lote.
"""
