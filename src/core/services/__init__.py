"""Servicios del Core: clasificación, filtrado, CSV y orquestación."""
