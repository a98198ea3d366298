"""
Infrastructure and distribution modules.
"""
from .scp import Distributor, copy_files
from .ssh import SSHConfig, SSHSession, open_session

__all__ = [
    'Distributor',
    'copy_files',
    'SSHConfig',
    'SSHSession',
    'open_session',
]
