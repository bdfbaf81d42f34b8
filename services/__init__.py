from .container import Services, build_services

# Facades are the public entry points; stores and persistence stay behind them.

__all__ = ["Services", "build_services"]
