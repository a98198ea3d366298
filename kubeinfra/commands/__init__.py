from . import copy, infra

__all__ = ['copy', 'infra']
