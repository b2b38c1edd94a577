"""Adaptadores de infraestructura (HTTP hacia SonarQube, escritura de archivos)."""
