"""Row-to-class mapping, CQL schema migrations and CQL type name helpers."""

__version__ = "0.1.0"

__all__ = ["callback", "camelize", "checksum", "iterx", "map_types", "mapper", "migrate"]