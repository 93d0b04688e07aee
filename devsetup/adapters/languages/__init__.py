"""Language adapters — python."""

from devsetup.adapters.languages.python import PythonInstaller

__all__ = ["PythonInstaller"]
