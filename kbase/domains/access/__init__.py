from kbase.domains.access.entities import Permission, resolve_permission

__all__ = ["Permission", "resolve_permission"]
