from . import user, file, resume_data, history

__all__ = [
    "user",
    "file",
    "resume_data",
    "history",
]
