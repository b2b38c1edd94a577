"""Core del reporter: dominio, contratos y servicios puros (sin HTTP ni CLI)."""
