from .analyzer import AnalyzerPort
from .filesystem import FilesystemPort
from .image_loader import ImageLoaderPort
from .index import IndexPort

__all__ = ["AnalyzerPort", "FilesystemPort", "ImageLoaderPort", "IndexPort"]
