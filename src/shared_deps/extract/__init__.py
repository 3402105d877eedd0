from .archive import ArchiveExtractor, FilterSet, is_license, is_package_json, strip_top_level

__all__ = ["ArchiveExtractor", "FilterSet", "is_license", "is_package_json", "strip_top_level"]
