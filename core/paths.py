import os

from core.config import settings


def proc_file_path(name, root=None):
    return os.path.join(root if root is not None else settings.PATH_PROCFS, name)
