from .dockerfile import DockerfileGenerator

__all__ = ["DockerfileGenerator"]
