from . import user, file, resume

__all__ = [
    "user",
    "file",
    "resume",
]
