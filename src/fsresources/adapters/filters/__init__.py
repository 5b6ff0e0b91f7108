from .builtin import FilterRegistry, default_registry, register_filter

__all__ = ["FilterRegistry", "default_registry", "register_filter"]
